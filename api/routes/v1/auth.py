"""
api/routes/v1/auth.py -- Registration, login, and password-reset endpoints.

Routes:
  POST /api/v1/auth/register               -- create an unapproved account (public)
  POST /api/v1/auth/login                  -- username-or-email login; returns bearer token
  POST /api/v1/auth/forgot-password        -- start a reset; generic acknowledgment always
  POST /api/v1/auth/reset-password/{token} -- consume a reset token (single use)
  GET  /api/v1/auth/me                     -- current principal (requires auth)

Security:
  POST /login and POST /forgot-password are rate-limited per client IP.
  Login failures for unknown accounts and wrong passwords are identical.
  Cache-Control: no-store on responses that carry a token.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PrincipalResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UserEnvelope,
)
from auth.dependencies import get_current_principal
from auth.issuer import CredentialIssuer
from auth.models import Principal
from core.config import get_settings

logger = logging.getLogger("gatekeeper.api.auth")

# Auth policy:
# - POST /api/v1/auth/register:              public
# - POST /api/v1/auth/login:                 public, rate-limited
# - POST /api/v1/auth/forgot-password:       public, rate-limited
# - POST /api/v1/auth/reset-password/{tok}:  public -- the token is the credential
# - GET  /api/v1/auth/me:                    requires auth (get_current_principal)
router = APIRouter()


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create an account that cannot log in until a master admin approves it."""
    issuer: CredentialIssuer = request.app.state.issuer
    principal = issuer.register(
        username=body.username,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return RegisterResponse(
        message="User registered successfully. Awaiting admin approval.",
        user_id=principal.id,
    )


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(_login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with a username or email plus password.

    Errors (rendered by the AuthError handler):
      401 invalid_credentials -- unknown login or wrong password
      403 not_approved        -- correct password, account awaiting approval
    """
    issuer: CredentialIssuer = request.app.state.issuer
    principal, token = issuer.authenticate(body.login, body.password)
    logger.info("User id=%s logged in", principal.id)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=issuer.config.token_ttl_seconds,
            user=PrincipalResponse.from_principal(principal),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/forgot-password", response_model=MessageResponse)
@limiter.limit("5/minute")
def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    """Email a reset link if the address belongs to an active account.

    The response is the same whether or not the account exists.
    """
    issuer: CredentialIssuer = request.app.state.issuer
    return MessageResponse(message=issuer.request_password_reset(body.email))


@router.post("/auth/reset-password/{token}", response_model=MessageResponse)
def reset_password(request: Request, token: str, body: ResetPasswordRequest) -> MessageResponse:
    """Set a new password with a reset token. The token stops working on success."""
    issuer: CredentialIssuer = request.app.state.issuer
    issuer.consume_reset_token(token, body.password)
    return MessageResponse(message="Password reset successful")


@router.get("/auth/me", response_model=UserEnvelope)
def me(current: Principal = Depends(get_current_principal)) -> UserEnvelope:
    """Return the currently authenticated principal."""
    return UserEnvelope(user=PrincipalResponse.from_principal(current))
