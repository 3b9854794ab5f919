"""Compact payload codec: short-keyed canonical JSON for image messages."""

from pydantic import ValidationError as PydanticValidationError

from common.checksum import compute_checksum
from common.constants import MAX_IMAGE_TEXT_LENGTH
from common.exceptions import ValidationError
from common.logging_config import get_logger
from common.protocol import CompactPayload
from common.types import Payload

logger = get_logger(__name__)


class PayloadCodec:
    """
    Maps a Payload to its compact wire text and back.

    The image field is embedded as-is. It arrives already compressed from the
    image pipeline, so a second compression pass would only grow it.
    """

    def __init__(self, max_image_length: int = MAX_IMAGE_TEXT_LENGTH):
        self.max_image_length = max_image_length

    def _to_model(self, payload: Payload) -> CompactPayload:
        try:
            return CompactPayload.from_payload(payload)
        except PydanticValidationError as e:
            raise ValidationError(f"Payload fields have invalid types: {e.error_count()} error(s)") from e

    def validate(self, payload: Payload) -> None:
        """
        Reject payloads that cannot be sent.

        Raises:
            ValidationError: If a required field is empty or out of range
        """
        self._to_model(payload)
        if not payload.image_data:
            raise ValidationError("Image data is empty")
        if len(payload.image_data) > self.max_image_length:
            raise ValidationError(
                f"Image data too large: {len(payload.image_data)} > {self.max_image_length} characters"
            )
        if not payload.filename:
            raise ValidationError("Filename is required")
        if not payload.content_type.startswith("image/"):
            raise ValidationError(f"Content type must be an image, got '{payload.content_type}'")
        if not payload.sender or not payload.recipient:
            raise ValidationError("Sender and recipient are required")
        if payload.timestamp <= 0:
            raise ValidationError(f"Invalid timestamp: {payload.timestamp!r}")

    def encode(self, payload: Payload) -> str:
        """
        Serialize a payload to canonical compact text.

        Args:
            payload: Payload to encode

        Returns:
            Whitespace-free JSON text with short keys

        Raises:
            ValidationError: If a field has the wrong type
        """
        text = self._to_model(payload).to_json()
        logger.debug(f"Encoded compact payload: {len(text)} characters (image {len(payload.image_data)})")
        return text

    def decode(self, compact: str) -> Payload:
        """
        Parse compact text back into a Payload.

        Raises:
            ParseError: If the text is not a compact payload
        """
        return CompactPayload.from_json(compact).to_payload()

    def hash(self, compact: str) -> str:
        """SHA-256 hex digest of the canonical compact text."""
        return compute_checksum(compact)
