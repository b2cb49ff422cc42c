# Models package (re-export feature modules for stable imports)
from .artisans.artisan import Artisan
from .auth.otp import OTPSessionRecord
from .auth.refresh_token import RefreshTokenRecord
from .applications.application import Application, TimelineEntryRecord, WebhookEvent

__all__ = [
    "Artisan",
    "OTPSessionRecord",
    "RefreshTokenRecord",
    "Application",
    "TimelineEntryRecord",
    "WebhookEvent",
]
