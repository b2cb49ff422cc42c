from typing import Protocol


class RateLimiter(Protocol):
    """Hit counter per key; OTP sends are keyed ``otp:{phone}:{purpose}``."""

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        """Record one hit for ``key`` and report whether it is still within budget."""
        ...
