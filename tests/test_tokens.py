"""Unit tests for auth/tokens.py -- password hashing and session JWTs.

Covers:
- bcrypt hash/verify round trip and malformed stored hashes
- the 72-byte bcrypt input limit
- session token accepted strictly before exp, rejected at and after exp
- wrong key, tampered payload, garbage input all decode to None
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.tokens import (
    MAX_PASSWORD_BYTES,
    decode_session_token,
    encode_session_token,
    generate_reset_token,
    hash_password,
    verify_password,
)

KEY = "k" * 40
T0 = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class TestPasswordHashing:
    def test_hash_is_not_plaintext(self) -> None:
        hashed = hash_password("hunter22")
        assert hashed != "hunter22"
        assert hashed.startswith("$2")

    def test_verify_accepts_correct_and_rejects_wrong(self) -> None:
        hashed = hash_password("hunter22")
        assert verify_password("hunter22", hashed) is True
        assert verify_password("hunter23", hashed) is False

    def test_same_password_hashes_differently(self) -> None:
        """Each hash carries its own salt."""
        assert hash_password("same-pass") != hash_password("same-pass")

    def test_malformed_hash_is_a_mismatch(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_password_past_72_bytes_refused(self) -> None:
        with pytest.raises(ValueError):
            hash_password("\u00e9" * 40)

    def test_password_at_72_bytes_hashes(self) -> None:
        password = "a" * MAX_PASSWORD_BYTES
        assert verify_password(password, hash_password(password)) is True

    def test_longer_password_sharing_a_prefix_does_not_verify(self) -> None:
        hashed = hash_password("a" * MAX_PASSWORD_BYTES)
        assert verify_password("a" * MAX_PASSWORD_BYTES + "tail", hashed) is False


class TestSessionTokens:
    def test_valid_one_second_before_expiry(self) -> None:
        token = encode_session_token(7, KEY, 60, T0)
        assert decode_session_token(token, KEY, T0 + timedelta(seconds=59)) == 7

    def test_invalid_at_expiry_instant(self) -> None:
        token = encode_session_token(7, KEY, 60, T0)
        assert decode_session_token(token, KEY, T0 + timedelta(seconds=60)) is None

    def test_invalid_after_expiry(self) -> None:
        token = encode_session_token(7, KEY, 60, T0)
        assert decode_session_token(token, KEY, T0 + timedelta(seconds=61)) is None

    def test_wrong_key_rejected(self) -> None:
        token = encode_session_token(7, KEY, 60, T0)
        assert decode_session_token(token, "x" * 40, T0) is None

    def test_tampered_token_rejected(self) -> None:
        token = encode_session_token(7, KEY, 60, T0)
        header, payload, signature = token.split(".")
        forged = jwt.encode({"sub": "1", "exp": int(T0.timestamp()) + 60}, "attacker-key-" * 4, algorithm="HS256")
        tampered = ".".join([header, forged.split(".")[1], signature])
        assert decode_session_token(tampered, KEY, T0) is None

    def test_garbage_rejected(self) -> None:
        assert decode_session_token("not.a.jwt", KEY, T0) is None
        assert decode_session_token("", KEY, T0) is None

    def test_non_integer_subject_rejected(self) -> None:
        token = jwt.encode({"sub": "alice", "exp": int(T0.timestamp()) + 60}, KEY, algorithm="HS256")
        assert decode_session_token(token, KEY, T0) is None

    def test_missing_expiry_rejected(self) -> None:
        token = jwt.encode({"sub": "3"}, KEY, algorithm="HS256")
        assert decode_session_token(token, KEY, T0) is None


def test_reset_tokens_are_unique_hex() -> None:
    tokens = {generate_reset_token() for _ in range(20)}
    assert len(tokens) == 20
    assert all(len(t) == 40 and int(t, 16) >= 0 for t in tokens)
