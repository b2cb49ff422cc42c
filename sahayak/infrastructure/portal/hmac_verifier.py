import hashlib
import hmac
import logging
from typing import Dict

from ...application.ports.signature_verifier import SignatureVerifier

logger = logging.getLogger(__name__)


def sign_body(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class HmacSignatureVerifier(SignatureVerifier):
    """HMAC-SHA256 over the request body, one shared secret per portal."""

    def __init__(self, secrets: Dict[str, str]):
        self.secrets = dict(secrets)

    def verify(self, portal_name: str, body: bytes, signature: str) -> bool:
        secret = self.secrets.get(portal_name)
        if not secret or not signature:
            if not secret:
                logger.warning(f"No webhook secret configured for portal {portal_name}")
            return False
        if signature.startswith("sha256="):
            signature = signature[len("sha256="):]
        return hmac.compare_digest(sign_body(secret, body), signature.strip().lower())
