# Service construction for request handlers; override in tests via app.dependency_overrides
import logging
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from sqlmodel import Session

from .config import settings
from .database import get_session
from .application.ports.otp_sender import OTPSender
from .application.ports.portal_client import PortalClient
from .application.ports.rate_limiter import RateLimiter
from .application.ports.signature_verifier import SignatureVerifier
from .application.ports.audit_logger import AuditLogger
from .application.services.otp_service import OTPService
from .application.services.application_tracker import ApplicationTracker
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.otp.logging_sender import LoggingOTPSender
from .infrastructure.portal.hmac_verifier import HmacSignatureVerifier
from .infrastructure.portal.http_portal_client import HttpPortalClient
from .infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from .infrastructure.tokens.jwt_issuer import JWTTokenIssuer
from .infrastructure.persistence.sqlalchemy.repositories.artisan_repository_sql import SqlArtisanRepository
from .infrastructure.persistence.sqlalchemy.repositories.otp_session_repository_sql import SqlOTPSessionRepository
from .infrastructure.persistence.sqlalchemy.repositories.refresh_token_repository_sql import SqlRefreshTokenRepository
from .infrastructure.persistence.sqlalchemy.repositories.application_repository_sql import SqlApplicationRepository

logger = logging.getLogger(__name__)


@lru_cache()
def get_rate_limiter() -> RateLimiter:
    if settings.REDIS_URL:
        from .infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter
        logger.info("Using Redis rate limiter")
        return RedisRateLimiter(settings.REDIS_URL)
    logger.info("Using memory-based rate limiting")
    return InMemoryRateLimiter()


@lru_cache()
def get_otp_sender() -> OTPSender:
    if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN:
        from .infrastructure.otp.twilio_sender import TwilioSMSSender
        return TwilioSMSSender(
            settings.TWILIO_ACCOUNT_SID,
            settings.TWILIO_AUTH_TOKEN,
            settings.TWILIO_PHONE_NUMBER,
            country_code=settings.SMS_COUNTRY_CODE,
            expiry_minutes=settings.OTP_EXPIRY_MINUTES,
            timeout=settings.TWILIO_TIMEOUT_SEC,
        )
    logger.warning("Twilio not configured; OTP codes will not be delivered")
    return LoggingOTPSender()


@lru_cache()
def get_portal_client() -> Optional[PortalClient]:
    if not settings.PORTAL_BASE_URLS:
        return None
    return HttpPortalClient(settings.PORTAL_BASE_URLS, timeout=settings.PORTAL_TIMEOUT_SEC)


@lru_cache()
def get_signature_verifier() -> SignatureVerifier:
    return HmacSignatureVerifier(settings.WEBHOOK_SECRETS)


@lru_cache()
def get_audit_logger() -> AuditLogger:
    return StdAuditLogger()


def get_token_issuer(session: Session = Depends(get_session)) -> JWTTokenIssuer:
    return JWTTokenIssuer(
        SqlRefreshTokenRepository(session),
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        access_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        refresh_days=settings.REFRESH_TOKEN_EXPIRE_DAYS,
        issuer=settings.TOKEN_ISSUER,
    )


def get_otp_service(
    session: Session = Depends(get_session),
    token_issuer: JWTTokenIssuer = Depends(get_token_issuer),
    sender: OTPSender = Depends(get_otp_sender),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    audit: AuditLogger = Depends(get_audit_logger),
) -> OTPService:
    return OTPService(
        session_repo=SqlOTPSessionRepository(session),
        artisan_repo=SqlArtisanRepository(session),
        sender=sender,
        token_issuer=token_issuer,
        code_secret=settings.SECRET_KEY,
        rate_limiter=rate_limiter,
        audit=audit,
        code_length=settings.OTP_LENGTH,
        expiry_minutes=settings.OTP_EXPIRY_MINUTES,
        max_attempts=settings.MAX_OTP_ATTEMPTS,
        supersede_previous=settings.OTP_SUPERSEDE_PREVIOUS,
        send_limit=settings.OTP_SEND_LIMIT,
        send_window_seconds=settings.OTP_SEND_WINDOW_SEC,
    )


def get_application_tracker(
    session: Session = Depends(get_session),
    portal: Optional[PortalClient] = Depends(get_portal_client),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
) -> ApplicationTracker:
    return ApplicationTracker(
        repo=SqlApplicationRepository(session),
        portal=portal,
        verifier=verifier,
        refresh_interval=timedelta(seconds=settings.TRACKER_REFRESH_INTERVAL_SEC),
        default_portal=settings.DEFAULT_PORTAL,
    )
