import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pnl.db.session import SessionLocal
from pnl.core.security import decode_token

bearer = HTTPBearer()

ADMIN_ROLE = "admin"


def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


def current_user(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> dict:
    """Claims of the bearer token. ``sub`` is what lands in the audit trail."""
    try:
        claims = decode_token(creds.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="invalid_token")
    if not claims.get("sub"):
        raise HTTPException(status_code=401, detail="invalid_token")
    return claims


def require_admin(u: dict = Depends(current_user)) -> dict:
    # every mutation of loans, payments or the ledger goes through here
    if (u.get("role") or "").lower() != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="admin_only")
    return u
