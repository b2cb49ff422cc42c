from dataclasses import dataclass
from typing import Protocol, Dict, Any


@dataclass
class IssuedTokens:
    access_token: str
    refresh_token: str
    expires_in: int
    session_id: str


class TokenIssuer(Protocol):
    def issue(self, artisan_id: str, phone: str, role: str = "artisan") -> IssuedTokens:
        ...

    def refresh(self, refresh_token: str) -> IssuedTokens:
        ...

    def revoke(self, session_id: str) -> bool:
        ...

    def decode(self, access_token: str) -> Dict[str, Any]:
        ...
