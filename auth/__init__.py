"""auth/ -- Authentication and authorization core for Gatekeeper.

Layer rule: auth/ imports stdlib, third-party libraries, and core/db.py.
It does NOT import from api/ or products/, and never reads settings itself.
api/ imports from auth/, not the other way around.
"""
