import mimetypes
import re
from dataclasses import dataclass
from pathlib import PurePosixPath

import structlog

from gateway.models.events import DocumentPayload, InboundEvent, MEDIA_PAYLOADS
from gateway.session.transport import Connection

logger = structlog.get_logger()

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


@dataclass(frozen=True)
class MediaFile:
    data: bytes
    file_name: str


def safe_name(value: str) -> str:
    """Last path component of *value* without control chars; "" if nothing usable is left."""
    name = PurePosixPath(_CONTROL_CHARS.sub("", value).replace("\\", "/")).name.strip()
    if name in ("", ".", ".."):
        return ""
    return name


def derive_file_name(event: InboundEvent) -> str:
    """Stored name, unique per message: ``<messageId>-<fileName>`` or ``<messageId><ext>``.

    Both parts come from the sender, so they are reduced to a single path
    component before use.
    """
    prefix = safe_name(event.message_id) or "media"
    payload = event.payload
    if isinstance(payload, DocumentPayload):
        original = safe_name(payload.file_name)
        if original:
            return f"{prefix}-{original}"
    mime_type = getattr(payload, "mime_type", "").split(";", 1)[0].strip()
    extension = mimetypes.guess_extension(mime_type) if mime_type else None
    return f"{prefix}{extension or '.bin'}"


class MediaFetcher:
    """Downloads and decrypts attachment bytes through the live connection."""

    async def fetch(self, event: InboundEvent, connection: Connection) -> MediaFile | None:
        if not isinstance(event.payload, MEDIA_PAYLOADS):
            return None

        log = logger.bind(message_id=event.message_id, message_type=event.message_type)
        try:
            data = await connection.download_media(event.raw)
        except Exception:
            log.warning("media_download_failed", exc_info=True)
            return None

        if not data:
            log.warning("media_download_empty")
            return None

        return MediaFile(data=data, file_name=derive_file_name(event))
