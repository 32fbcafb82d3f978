"""GitHub webhook signature validation.

GitHub signs every delivery with HMAC-SHA256 over the raw request body,
using the webhook's shared secret, and sends the result in the
X-Hub-Signature-256 header as "sha256=<hexdigest>".

The comparison must run over the exact bytes received; re-serializing the
decoded JSON would change whitespace and key order and break the digest.
"""

import hashlib
import hmac
import logging
from typing import Mapping, Optional

from supervisor.webhook.models import ValidationResult

logger = logging.getLogger(__name__)


SIGNATURE_HEADER = "x-hub-signature-256"
EVENT_TYPE_HEADER = "x-github-event"
DELIVERY_ID_HEADER = "x-github-delivery"

SIGNATURE_PREFIX = "sha256="


class ConfigurationError(Exception):
    """Raised when the validator is constructed without a usable secret."""


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Look up a header case-insensitively.

    Starlette's Headers are already case-insensitive, plain dicts are not.
    """
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if key.lower() == name:
                value = candidate
                break
    if value is None or not value.strip():
        return None
    return value.strip()


class SignatureValidator:
    """Validates GitHub webhook signatures with a shared secret.

    Attributes:
        secret: The shared webhook secret, as bytes.
    """

    def __init__(self, secret: Optional[str]) -> None:
        """Initialize the validator.

        Args:
            secret: The GitHub webhook secret.

        Raises:
            ConfigurationError: If the secret is missing or blank.
        """
        if not secret or not secret.strip():
            raise ConfigurationError("Webhook secret is required")
        self._secret = secret.encode("utf-8")

    def compute_signature(self, raw_body: bytes) -> str:
        """Compute the expected X-Hub-Signature-256 value for a body."""
        digest = hmac.new(self._secret, raw_body, hashlib.sha256).hexdigest()
        return SIGNATURE_PREFIX + digest

    def validate(
        self, headers: Mapping[str, str], raw_body: bytes
    ) -> ValidationResult:
        """Validate the signature of a delivery.

        Args:
            headers: Request headers.
            raw_body: The exact request body bytes.

        Returns:
            ValidationResult with valid=True, or valid=False and an error of
            "missing signature header" or "invalid signature".
        """
        signature = _get_header(headers, SIGNATURE_HEADER)
        if signature is None:
            return ValidationResult(valid=False, error="missing signature header")

        expected = self.compute_signature(raw_body)

        if not hmac.compare_digest(
            signature.encode("utf-8"), expected.encode("utf-8")
        ):
            logger.debug(
                "Signature mismatch",
                extra={"delivery_id": self.get_delivery_id(headers)},
            )
            return ValidationResult(valid=False, error="invalid signature")

        return ValidationResult(valid=True)

    def get_event_type(self, headers: Mapping[str, str]) -> Optional[str]:
        """Return the X-GitHub-Event header value, if present."""
        return _get_header(headers, EVENT_TYPE_HEADER)

    def get_delivery_id(self, headers: Mapping[str, str]) -> Optional[str]:
        """Return the X-GitHub-Delivery header value, if present.

        Used for log correlation only; deliveries are not deduplicated on it.
        """
        return _get_header(headers, DELIVERY_ID_HEADER)


def create_signature_validator(secret: Optional[str]) -> SignatureValidator:
    """Factory function to create a SignatureValidator instance.

    Args:
        secret: The GitHub webhook secret.

    Returns:
        A configured SignatureValidator instance.

    Raises:
        ConfigurationError: If the secret is missing or blank.
    """
    return SignatureValidator(secret=secret)
