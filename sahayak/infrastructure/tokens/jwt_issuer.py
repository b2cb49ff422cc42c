import logging
import secrets
from datetime import timedelta
from typing import Dict, Any

import jwt

from ...application.ports.token_issuer import TokenIssuer, IssuedTokens
from ...application.ports.refresh_token_repo import RefreshTokenRepository
from ...exceptions import InvalidToken
from ...utils import utcnow

logger = logging.getLogger(__name__)

RBAC_PERMISSIONS = {
    "artisan": [
        "read:own_profile",
        "update:own_profile",
        "read:all_schemes",
        "create:applications",
        "read:own_applications",
        "upload:documents",
        "read:own_notifications",
        "update:own_preferences",
    ],
    "officer": [
        "read:assigned_applications",
        "update:application_status",
        "read:analytics",
        "read:artisan_profiles",
        "create:notifications",
    ],
    "admin": [
        "read:all_profiles",
        "read:all_applications",
        "manage:system",
        "read:analytics",
        "manage:schemes",
        "manage:users",
        "system:admin",
    ],
}


def has_permission(permissions, required: str) -> bool:
    return required in permissions or "*" in permissions


class JWTTokenIssuer(TokenIssuer):
    def __init__(self, refresh_repo: RefreshTokenRepository, secret_key: str, algorithm: str = "HS256",
                 access_minutes: int = 24 * 60, refresh_days: int = 7, issuer: str = "scheme-sahayak-v2"):
        self.refresh_repo = refresh_repo
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_minutes = access_minutes
        self.refresh_days = refresh_days
        self.issuer = issuer

    def issue(self, artisan_id: str, phone: str, role: str = "artisan") -> IssuedTokens:
        if role not in RBAC_PERMISSIONS:
            raise ValueError(f"Unknown role: {role}")
        session_id = secrets.token_hex(32)
        now = utcnow()
        access_payload = {
            "sub": artisan_id,
            "phone": phone,
            "role": role,
            "permissions": RBAC_PERMISSIONS[role],
            "mfa_verified": True,
            "session_id": session_id,
            "iss": self.issuer,
            "iat": now,
            "exp": now + timedelta(minutes=self.access_minutes),
        }
        refresh_expires = now + timedelta(days=self.refresh_days)
        refresh_payload = {
            "sub": artisan_id,
            "session_id": session_id,
            "type": "refresh",
            "iss": self.issuer,
            "exp": refresh_expires,
        }
        access_token = jwt.encode(access_payload, self.secret_key, algorithm=self.algorithm)
        refresh_token = jwt.encode(refresh_payload, self.secret_key, algorithm=self.algorithm)
        self.refresh_repo.create(session_id, artisan_id, phone, role, refresh_expires)
        return IssuedTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.access_minutes * 60,
            session_id=session_id,
        )

    def refresh(self, refresh_token: str) -> IssuedTokens:
        claims = self._decode(refresh_token)
        if claims.get("type") != "refresh":
            raise InvalidToken("Invalid refresh token")
        record = self.refresh_repo.get(claims.get("session_id", ""))
        if record is None or not record.is_active or record.expires_at < utcnow():
            raise InvalidToken("Refresh token is no longer valid")
        # rotate: the old refresh token stops working once a new pair is issued
        self.refresh_repo.deactivate(record.session_id)
        return self.issue(record.artisan_id, record.phone, record.role)

    def revoke(self, session_id: str) -> bool:
        if not session_id:
            return False
        return self.refresh_repo.deactivate(session_id)

    def decode(self, access_token: str) -> Dict[str, Any]:
        claims = self._decode(access_token)
        if claims.get("type") == "refresh" or not claims.get("sub") or not claims.get("role"):
            raise InvalidToken("Invalid token payload")
        record = self.refresh_repo.get(claims.get("session_id", ""))
        if record is not None and not record.is_active:
            raise InvalidToken("Session has been logged out")
        return claims

    def _decode(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm], issuer=self.issuer)
        except jwt.ExpiredSignatureError:
            logger.warning("Token has expired")
            raise InvalidToken("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.warning(f"JWT error: {e}")
            raise InvalidToken("Invalid token")
