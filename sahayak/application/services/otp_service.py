import hashlib
import hmac
import logging
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Dict, Any

from ..ports.otp_session_repo import OTPSessionRepository, OTPSessionDto
from ..ports.artisan_repo import ArtisanRepository
from ..ports.otp_sender import OTPSender, DeliveryError
from ..ports.token_issuer import TokenIssuer, IssuedTokens
from ..ports.rate_limiter import RateLimiter
from ..ports.audit_logger import AuditLogger
from ...exceptions import (
    ValidationFailed,
    MissingPhone,
    InvalidPhoneFormat,
    InvalidPurpose,
    InvalidSession,
    OTPExpired,
    InvalidOTP,
    MaxAttemptsExceeded,
    RateLimited,
    UpstreamError,
)
from ...utils import utcnow

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
PURPOSES = ("login", "registration", "password_reset")

# session states
CREATED = "created"
VERIFIED = "verified"
EXPIRED = "expired"
EXHAUSTED = "exhausted"
CONSUMED = "consumed"
SUPERSEDED = "superseded"


def generate_code(length: int = 6) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


@dataclass
class OTPChallenge:
    session_id: str
    expires_at: datetime


@dataclass
class AuthResult:
    success: bool = True
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    artisan_id: Optional[str] = None
    expires_in: Optional[int] = None
    message: str = ""
    requires_registration: bool = False


@dataclass
class OTPService:
    """Phone OTP login and registration gate.

    A session moves from ``created`` to exactly one of ``verified``,
    ``expired`` or ``exhausted``. A verified session is consumed once tokens
    are issued, either directly (known phone) or through ``register``.
    """

    session_repo: OTPSessionRepository
    artisan_repo: ArtisanRepository
    sender: OTPSender
    token_issuer: TokenIssuer
    code_secret: str
    rate_limiter: Optional[RateLimiter] = None
    audit: Optional[AuditLogger] = None
    clock: Callable[[], datetime] = utcnow
    code_generator: Callable[[int], str] = generate_code
    code_length: int = 6
    expiry_minutes: int = 5
    max_attempts: int = 3
    supersede_previous: bool = True
    send_limit: int = 3
    send_window_seconds: int = 3600
    registration_window: timedelta = field(default_factory=lambda: timedelta(minutes=30))

    def send_otp(self, phone: Optional[str], purpose: Optional[str] = "login") -> OTPChallenge:
        phone = self._validate_phone(phone)
        purpose = purpose or "login"
        if purpose not in PURPOSES:
            raise InvalidPurpose()

        if self.rate_limiter and not self.rate_limiter.allow(f"otp:{phone}:{purpose}", self.send_limit, self.send_window_seconds):
            logger.warning(f"OTP send rate limit exceeded for {purpose} flow")
            self._audit("otp_send", phone, success=False, details={"reason": "rate_limited", "purpose": purpose})
            raise RateLimited("Too many OTP requests. Please try again later.")

        if self.supersede_previous:
            superseded = self.session_repo.supersede(phone, purpose)
            if superseded:
                logger.info(f"Superseded {superseded} outstanding OTP session(s)")

        code = self.code_generator(self.code_length)
        now = self.clock()
        session = self.session_repo.create(
            phone=phone,
            purpose=purpose,
            code_hash=self._hash_code(code),
            max_attempts=self.max_attempts,
            expires_at=now + timedelta(minutes=self.expiry_minutes),
            created_at=now,
        )

        try:
            self.sender.send(phone, code, purpose)
        except DeliveryError as e:
            self.session_repo.transition(session.id, CREATED, EXPIRED)
            self._audit("otp_send", phone, success=False, details={"reason": "delivery_failed", "purpose": purpose})
            raise UpstreamError(f"Failed to deliver OTP: {e}", code="DELIVERY_FAILED")

        self._audit("otp_send", phone, details={"purpose": purpose})
        logger.info(f"OTP sent for {purpose}")
        return OTPChallenge(session_id=session.id, expires_at=session.expires_at)

    def verify_otp(self, session_id: Optional[str], otp: Optional[str]) -> AuthResult:
        if not otp or not str(otp).strip():
            raise ValidationFailed("OTP is required")
        otp = str(otp).strip()

        session = self.session_repo.get(session_id) if session_id else None
        self._check_verifiable(session)

        attempts = self.session_repo.increment_attempts(session.id)
        if attempts is None:
            # lost a race against another verify of the same session
            current = self.session_repo.get(session.id)
            if current is not None and current.status in (VERIFIED, CONSUMED):
                raise InvalidSession()
            raise MaxAttemptsExceeded()

        if not hmac.compare_digest(self._hash_code(otp), session.code_hash):
            remaining = session.max_attempts - attempts
            if remaining <= 0:
                self.session_repo.transition(session.id, CREATED, EXHAUSTED)
            self._audit("otp_verify", session.phone, success=False, details={"attempts": attempts})
            raise InvalidOTP(f"Invalid OTP. {max(remaining, 0)} attempt(s) remaining")

        if not self.session_repo.transition(session.id, CREATED, VERIFIED):
            raise InvalidSession()

        artisan = self.artisan_repo.get_by_phone(session.phone)
        if artisan is None:
            self._audit("otp_verify", session.phone, details={"requires_registration": True})
            return AuthResult(
                requires_registration=True,
                message="OTP verified. Please complete registration.",
            )

        tokens = self.token_issuer.issue(artisan.id, session.phone)
        self.session_repo.transition(session.id, VERIFIED, CONSUMED)
        if not artisan.is_verified:
            self.artisan_repo.mark_verified(artisan.id)
        self._audit("otp_verify", session.phone, artisan_id=artisan.id)
        logger.info(f"Artisan {artisan.id} authenticated")
        return self._auth_result(artisan.id, tokens, "Authentication successful")

    def register(self, session_id: Optional[str], name: Optional[str], preferred_language: Optional[str] = None, district: Optional[str] = None) -> AuthResult:
        if not name or not name.strip():
            raise ValidationFailed("Name is required")
        session = self.session_repo.get(session_id) if session_id else None
        if session is None or session.status != VERIFIED:
            raise InvalidSession()
        if self.clock() > session.created_at + self.registration_window:
            raise InvalidSession("Verification is too old. Please request a new OTP.")
        if not self.session_repo.transition(session.id, VERIFIED, CONSUMED):
            raise InvalidSession()

        artisan = self.artisan_repo.get_by_phone(session.phone)
        if artisan is None:
            artisan = self.artisan_repo.create(
                name=name.strip(),
                phone=session.phone,
                preferred_language=preferred_language,
                district=district,
            )
            self.artisan_repo.mark_verified(artisan.id)
        tokens = self.token_issuer.issue(artisan.id, session.phone)
        self._audit("register", session.phone, artisan_id=artisan.id)
        return self._auth_result(artisan.id, tokens, "Registration successful")

    def refresh(self, refresh_token: Optional[str]) -> IssuedTokens:
        if not refresh_token:
            raise ValidationFailed("Refresh token is required")
        return self.token_issuer.refresh(refresh_token)

    def logout(self, access_token: str) -> bool:
        claims = self.token_issuer.decode(access_token)
        revoked = self.token_issuer.revoke(claims.get("session_id", ""))
        logger.info(f"Artisan {claims.get('sub')} logged out")
        return revoked

    def authenticate(self, access_token: str) -> Dict[str, Any]:
        return self.token_issuer.decode(access_token)

    def _check_verifiable(self, session: Optional[OTPSessionDto]) -> None:
        if session is None or session.status in (VERIFIED, CONSUMED, SUPERSEDED):
            raise InvalidSession()
        if session.status == EXPIRED:
            raise OTPExpired()
        if session.status == EXHAUSTED:
            raise MaxAttemptsExceeded()
        if self.clock() > session.expires_at:
            self.session_repo.transition(session.id, CREATED, EXPIRED)
            raise OTPExpired()
        if session.attempts >= session.max_attempts:
            self.session_repo.transition(session.id, CREATED, EXHAUSTED)
            raise MaxAttemptsExceeded()

    def _validate_phone(self, phone: Optional[str]) -> str:
        if phone is None or not str(phone).strip():
            raise MissingPhone()
        phone = str(phone).strip()
        if not PHONE_PATTERN.match(phone):
            raise InvalidPhoneFormat("Invalid phone number format. Enter a 10-digit mobile number.")
        return phone

    def _hash_code(self, code: str) -> str:
        return hashlib.sha256((code + self.code_secret).encode()).hexdigest()

    def _auth_result(self, artisan_id: str, tokens: IssuedTokens, message: str) -> AuthResult:
        return AuthResult(
            token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            artisan_id=artisan_id,
            expires_in=tokens.expires_in,
            message=message,
        )

    def _audit(self, action: str, phone: str, artisan_id: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        if self.audit:
            self.audit.log(action, phone, artisan_id=artisan_id, success=success, details=details)
