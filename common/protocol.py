"""Wire envelope definitions for the image channel (serialization formats)."""

import json
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError, model_validator

from common.constants import ENVELOPE_VERSION
from common.exceptions import ParseError
from common.types import Fragment, Payload

HASH_PATTERN = r"^[0-9a-fA-F]{64}$"


def dumps_compact(obj: dict) -> str:
    """Serialize to whitespace-free JSON text."""
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


class SingleEnvelope(BaseModel):
    """Whole ciphertext in one operation: {v, to, e, h}."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    v: Literal[1] = ENVELOPE_VERSION
    to: str = Field(min_length=1)
    e: str = Field(min_length=1)
    h: Optional[str] = Field(default=None, pattern=HASH_PATTERN)

    def to_json(self) -> str:
        """Serialize to canonical JSON text."""
        return dumps_compact(self.model_dump(exclude_none=True))

    @classmethod
    def from_json(cls, data: str) -> 'SingleEnvelope':
        """Deserialize from JSON text."""
        envelope = parse_envelope(data)
        if not isinstance(envelope, cls):
            raise ParseError("Expected single envelope, got chunk envelope")
        return envelope


class ChunkEnvelope(BaseModel):
    """One slice of a chunked message: {v, to, sid, idx, tot, h?, e}."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    v: Literal[1] = ENVELOPE_VERSION
    to: str = Field(min_length=1)
    sid: str = Field(min_length=1)
    idx: int = Field(ge=0, strict=True)
    tot: int = Field(ge=1, strict=True)
    h: Optional[str] = Field(default=None, pattern=HASH_PATTERN)
    e: str = Field(min_length=1)

    @model_validator(mode="after")
    def _index_within_total(self) -> 'ChunkEnvelope':
        if self.idx >= self.tot:
            raise ValueError(f"idx {self.idx} out of range for tot {self.tot}")
        return self

    def to_json(self) -> str:
        """Serialize to canonical JSON text."""
        return dumps_compact(self.model_dump(exclude_none=True))

    @classmethod
    def from_json(cls, data: str) -> 'ChunkEnvelope':
        """Deserialize from JSON text."""
        envelope = parse_envelope(data)
        if not isinstance(envelope, cls):
            raise ParseError("Expected chunk envelope, got single envelope")
        return envelope

    @classmethod
    def from_fragment(cls, recipient: str, session_id: str, total: int, fragment: Fragment) -> 'ChunkEnvelope':
        return cls(
            to=recipient,
            sid=session_id,
            idx=fragment.index,
            tot=total,
            h=fragment.hash,
            e=fragment.data,
        )

    def to_fragment(self) -> Fragment:
        return Fragment(index=self.idx, data=self.e, hash=self.h)


class CompactPayload(BaseModel):
    """
    Short-keyed payload text: {t, f, i, m?, n, c, ts}.

    Field order is the canonical key order of the encoded text.
    """
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    recipient: StrictStr = Field(alias="t")
    sender: StrictStr = Field(alias="f")
    image_data: StrictStr = Field(alias="i")
    caption: Optional[StrictStr] = Field(default=None, alias="m")
    filename: StrictStr = Field(alias="n")
    content_type: StrictStr = Field(alias="c")
    timestamp: StrictInt = Field(alias="ts")

    @classmethod
    def from_payload(cls, payload: Payload) -> 'CompactPayload':
        return cls(
            recipient=payload.recipient,
            sender=payload.sender,
            image_data=payload.image_data,
            caption=payload.caption or None,
            filename=payload.filename,
            content_type=payload.content_type,
            timestamp=payload.timestamp,
        )

    def to_payload(self) -> Payload:
        return Payload(
            image_data=self.image_data,
            filename=self.filename,
            content_type=self.content_type,
            sender=self.sender,
            recipient=self.recipient,
            timestamp=self.timestamp,
            caption=self.caption or None,
        )

    def to_json(self) -> str:
        """Serialize to canonical JSON text."""
        return dumps_compact(self.model_dump(by_alias=True, exclude_none=True))

    @classmethod
    def from_json(cls, data: str) -> 'CompactPayload':
        """
        Deserialize from JSON text.

        Raises:
            ParseError: If the text is not valid JSON or a field is missing or mistyped
        """
        try:
            return cls.model_validate_json(data)
        except ValidationError as e:
            raise ParseError(f"Invalid compact payload: {e.error_count()} error(s)") from e


Envelope = Union[SingleEnvelope, ChunkEnvelope]


def parse_envelope(data: str) -> Envelope:
    """
    Parse envelope JSON text into its tagged variant.

    The presence of 'sid' selects the chunk variant.

    Raises:
        ParseError: If the text is not valid JSON or fails validation
    """
    try:
        obj = json.loads(data)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"Envelope is not valid JSON: {e}") from e

    if not isinstance(obj, dict):
        raise ParseError(f"Envelope must be a JSON object, got {type(obj).__name__}")

    model = ChunkEnvelope if "sid" in obj else SingleEnvelope
    try:
        return model.model_validate(obj)
    except ValidationError as e:
        raise ParseError(f"Invalid {model.__name__}: {e.error_count()} error(s)") from e
