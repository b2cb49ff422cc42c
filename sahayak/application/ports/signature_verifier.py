import json
from typing import Protocol, Dict, Any


def canonical_body(payload: Dict[str, Any]) -> bytes:
    """Body used for signing when the raw request bytes are not available."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str).encode()


class SignatureVerifier(Protocol):
    def verify(self, portal_name: str, body: bytes, signature: str) -> bool:
        ...
