"""Inbound WhatsApp events.

The transport hands us a raw ``WebMessageInfo`` dict. ``RawMessage`` validates
the envelope; ``InboundEvent.from_raw`` turns it into an immutable event whose
``payload`` is one of a closed set of variants.
"""

from dataclasses import dataclass, field
from typing import Any, Union

from pydantic import BaseModel

# Wrapper key that may precede the real content key in a message dict
CONTEXT_INFO_KEY = "messageContextInfo"


class MessageKey(BaseModel):
    remoteJid: str | None = None           # Chat JID e.g. "5511999999999@s.whatsapp.net"
    fromMe: bool | None = False
    id: str | None = None
    participant: str | None = None


class RawMessage(BaseModel):
    key: MessageKey
    message: dict[str, Any] | None = None
    pushName: str | None = None
    messageTimestamp: int | str | dict[str, Any] | None = None

    model_config = {"extra": "allow"}


# ---------------------------------------------------------------------------
# Payload variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextPayload:
    body: str


@dataclass(frozen=True)
class LocationPayload:
    longitude: float
    latitude: float
    name: str | None
    address: str


@dataclass(frozen=True)
class Sequence:
    low: int = 0
    high: int = 0
    unsigned: bool = False


@dataclass(frozen=True)
class LiveLocationPayload:
    longitude: float
    latitude: float
    caption: str
    sequence: Sequence


@dataclass(frozen=True)
class DocumentPayload:
    caption: str | None
    mime_type: str
    title: str
    page_count: int
    file_name: str


@dataclass(frozen=True)
class ImagePayload:
    caption: str
    mime_type: str
    view_once: bool
    width: int
    height: int


@dataclass(frozen=True)
class UnknownPayload:
    type_name: str


Payload = Union[
    TextPayload,
    LocationPayload,
    LiveLocationPayload,
    DocumentPayload,
    ImagePayload,
    UnknownPayload,
]

MEDIA_PAYLOADS = (DocumentPayload, ImagePayload)


@dataclass(frozen=True)
class InboundEvent:
    message_id: str
    sender: str
    timestamp: int | None          # seconds since epoch
    from_me: bool
    push_name: str
    forwarded: bool
    message_type: str
    has_content: bool
    payload: Payload
    raw: dict[str, Any] = field(repr=False, compare=False)

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "InboundEvent":
        msg = RawMessage.model_validate(raw)
        content = msg.message or {}
        message_type = message_type_of(content)
        return cls(
            message_id=msg.key.id or "",
            sender=msg.key.remoteJid or "",
            timestamp=parse_timestamp(msg.messageTimestamp),
            from_me=bool(msg.key.fromMe),
            push_name=msg.pushName or "",
            forwarded=is_forwarded(content),
            message_type=message_type,
            has_content=bool(msg.message),
            payload=classify(message_type, content),
            raw=raw,
        )


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def message_type_of(content: dict[str, Any]) -> str:
    """Return the first content key of a message dict, or "unknown"."""
    for key in content:
        if key != CONTEXT_INFO_KEY:
            return key
    return "unknown"


def parse_timestamp(value: int | str | dict[str, Any] | None) -> int | None:
    """Accept seconds as int, numeric string, or a protobuf Long ``{low, high}``."""
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        low = int(value.get("low") or 0) & 0xFFFFFFFF
        high = int(value.get("high") or 0)
        return (high << 32) | low
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def is_forwarded(content: dict[str, Any]) -> bool:
    for key in ("extendedTextMessage", "imageMessage"):
        context = (content.get(key) or {}).get("contextInfo") or {}
        if context.get("isForwarded") or (context.get("forwardingScore") or 0) > 0:
            return True
    return False


def classify(message_type: str, content: dict[str, Any]) -> Payload:
    if message_type in ("conversation", "extendedTextMessage"):
        body = content.get("conversation") or (content.get("extendedTextMessage") or {}).get("text")
        return TextPayload(body=body or "")

    if message_type == "locationMessage":
        loc = content.get(message_type) or {}
        return LocationPayload(
            longitude=loc.get("degreesLongitude") or 0,
            latitude=loc.get("degreesLatitude") or 0,
            name=loc.get("name") or None,
            address=loc.get("address") or "",
        )

    if message_type == "liveLocationMessage":
        live = content.get(message_type) or {}
        seq = live.get("sequenceNumber")
        if isinstance(seq, dict):
            sequence = Sequence(
                low=int(seq.get("low") or 0),
                high=int(seq.get("high") or 0),
                unsigned=bool(seq.get("unsigned")),
            )
        elif seq:
            sequence = Sequence(low=int(seq))
        else:
            sequence = Sequence()
        return LiveLocationPayload(
            longitude=live.get("degreesLongitude") or 0,
            latitude=live.get("degreesLatitude") or 0,
            caption=live.get("caption") or "",
            sequence=sequence,
        )

    if message_type == "documentMessage":
        doc = content.get(message_type) or {}
        return DocumentPayload(
            caption=doc.get("caption") or None,
            mime_type=doc.get("mimetype") or "",
            title=doc.get("title") or "",
            page_count=int(doc.get("pageCount") or 0),
            file_name=doc.get("fileName") or "",
        )

    if message_type == "imageMessage":
        img = content.get(message_type) or {}
        return ImagePayload(
            caption=img.get("caption") or "",
            mime_type=img.get("mimetype") or "",
            view_once=bool(img.get("viewOnce")),
            width=int(img.get("width") or 0),
            height=int(img.get("height") or 0),
        )

    return UnknownPayload(type_name=message_type)
