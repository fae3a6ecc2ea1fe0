"""
Authentication for the StoreSync API
Validates bearer JWTs from the auth provider; the token subject is the tenant
"""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel

from storesync.core.config import settings
from storesync.core.exceptions import NotAuthenticatedError


# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)


class TokenUser(BaseModel):
    """User data extracted from JWT token"""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str = "authenticated"

    @property
    def tenant_id(self) -> str:
        """Each store owner account is its own tenant"""
        return self.id


class AuthConfig:
    """Authentication configuration"""

    @staticmethod
    def get_auth_secret() -> str:
        """Get the AUTH_SECRET from settings"""
        if not settings.AUTH_SECRET:
            raise ValueError("AUTH_SECRET is not configured")
        return settings.AUTH_SECRET

    @staticmethod
    def get_jwt_algorithm() -> str:
        """Supabase access tokens are HS256 signed"""
        return "HS256"


def decode_access_token(token: str) -> dict:
    """
    Decode and validate an access token.

    Expected payload:
    {
        "sub": "user_id",
        "email": "owner@example.com",
        "role": "authenticated",
        "exp": 1234567890
    }
    """
    try:
        return jwt.decode(
            token,
            AuthConfig.get_auth_secret(),
            algorithms=[AuthConfig.get_jwt_algorithm()],
            options={"verify_aud": False}
        )
    except JWTError as e:
        error_msg = str(e).lower()
        if "expired" in error_msg:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"}
            )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"}
        )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenUser:
    """
    Dependency that extracts and validates the current user from JWT.

    Usage:
        @router.post("/orders")
        async def sync_orders(user: TokenUser = Depends(get_current_user)):
            ...
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"}
        )

    payload = decode_access_token(credentials.credentials)

    user_id = payload.get("sub") or payload.get("id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload: missing user id",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return TokenUser(
        id=user_id,
        email=payload.get("email"),
        name=payload.get("name"),
        role=payload.get("role", "authenticated")
    )


def require_tenant(tenant_id: Optional[str]) -> str:
    """
    Fail fast when a tenant-scoped operation has no tenant.

    Called by services before any store access.
    """
    if not tenant_id or not str(tenant_id).strip():
        raise NotAuthenticatedError("A signed-in tenant is required to sync")
    return str(tenant_id)
