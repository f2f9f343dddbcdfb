"""
Shared FastAPI dependencies: bearer-token verification and caller scoping.

Tokens are issued by the account service; this backend only verifies them.
The payload carries the caller's user id ("id") and "role".
"""
from typing import Optional

from fastapi import HTTPException, Request
from jose import JWTError, jwt

from config import JWT_ALGORITHM, JWT_SECRET

TENANT_ROLE = "tenant"
LANDLORD_ROLE = "landlord"
ADMIN_ROLE = "admin"


def verify_token(request: Request) -> dict:
     auth = request.headers.get("Authorization")
     if not auth or not auth.startswith("Bearer "):
          raise HTTPException(status_code=401, detail="Missing token")
     token = auth.split(" ")[1]
     try:
          payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
          return payload
     except JWTError:
          raise HTTPException(status_code=403, detail="Invalid token")


def tenant_scope(token: dict) -> Optional[int]:
     """The tenant id to enforce ownership with, or None for staff tokens."""
     if token.get("role") == TENANT_ROLE:
          return token.get("id")
     return None


def landlord_scope(token: dict) -> Optional[int]:
     if token.get("role") == LANDLORD_ROLE:
          return token.get("id")
     return None


def require_role(token: dict, *roles: str) -> None:
     if token.get("role") not in roles:
          raise HTTPException(status_code=403, detail="You do not have permission to perform this action")
