"""Inbound Event → Canonical Record.

Text and location variants are pure mappings. Document and image variants
download the attachment and upload it to the blob store first:

* no bytes from the media fetcher → no record at all;
* upload failure → record with a null URL.
"""

import time

import structlog

from gateway.config import settings
from gateway.models.events import (
    DocumentPayload,
    ImagePayload,
    InboundEvent,
    LiveLocationPayload,
    LocationPayload,
    TextPayload,
    UnknownPayload,
)
from gateway.models.records import (
    CanonicalRecord,
    DocumentContent,
    ImageContent,
    LiveLocationContent,
    LocationContent,
    SequenceContent,
    TextContent,
)
from gateway.services.blob_store import FtpBlobStore
from gateway.services.media_fetcher import MediaFetcher
from gateway.session.transport import Connection
from gateway.utils.jid import decode_user

logger = structlog.get_logger()


class EventNormalizer:
    def __init__(
        self,
        blob_store: FtpBlobStore,
        media_fetcher: MediaFetcher,
        account: str | None = None,
        documents_dir: str | None = None,
        images_dir: str | None = None,
    ) -> None:
        self.blob_store = blob_store
        self.media_fetcher = media_fetcher
        self.account = account if account is not None else settings.FTP_USER
        self.documents_dir = documents_dir or settings.DOCUMENTS_DIR
        self.images_dir = images_dir or settings.IMAGES_DIR

    async def normalize(
        self, event: InboundEvent, connection: Connection
    ) -> CanonicalRecord | None:
        base = self._base_fields(event)
        payload = event.payload

        if isinstance(payload, TextPayload):
            return CanonicalRecord(**base, text=TextContent(message=payload.body))

        if isinstance(payload, LocationPayload):
            return CanonicalRecord(
                **base,
                location=LocationContent(
                    longitude=payload.longitude,
                    latitude=payload.latitude,
                    name=payload.name,
                    address=payload.address,
                    url="",
                ),
            )

        if isinstance(payload, LiveLocationPayload):
            seq = payload.sequence
            return CanonicalRecord(
                **base,
                liveLocation=LiveLocationContent(
                    longitude=payload.longitude,
                    latitude=payload.latitude,
                    sequence=SequenceContent(low=seq.low, high=seq.high, unsigned=seq.unsigned),
                    caption=payload.caption,
                ),
            )

        if isinstance(payload, DocumentPayload):
            found, url = await self._store_media(event, connection, self.documents_dir)
            if not found:
                return None
            return CanonicalRecord(
                **base,
                document=DocumentContent(
                    caption=payload.caption,
                    documentUrl=url,
                    mimeType=payload.mime_type,
                    title=payload.title,
                    pageCount=payload.page_count,
                    fileName=payload.file_name,
                ),
            )

        if isinstance(payload, ImagePayload):
            found, url = await self._store_media(event, connection, self.images_dir)
            if not found:
                return None
            return CanonicalRecord(
                **base,
                image=ImageContent(
                    imageUrl=url,
                    thumbnailUrl=url,
                    caption=payload.caption,
                    mimeType=payload.mime_type,
                    viewOnce=payload.view_once,
                    width=payload.width,
                    height=payload.height,
                ),
            )

        if isinstance(payload, UnknownPayload):
            logger.debug("unrecognized_message_type", message_type=payload.type_name)
        return CanonicalRecord(**base)

    @staticmethod
    def _base_fields(event: InboundEvent) -> dict:
        if event.timestamp:
            moment = event.timestamp * 1000
        else:
            moment = int(time.time() * 1000)
        return {
            "messageId": event.message_id,
            "phone": decode_user(event.sender) or "",
            "fromMe": event.from_me,
            "moment": moment,
            "senderName": event.push_name,
            "forwarded": event.forwarded,
        }

    async def _store_media(
        self, event: InboundEvent, connection: Connection, category: str
    ) -> tuple[bool, str | None]:
        """Return (media_found, public_url); the URL is None when the upload failed."""
        media = await self.media_fetcher.fetch(event, connection)
        if media is None:
            logger.warning(
                "media_unavailable_record_dropped",
                message_id=event.message_id,
                message_type=event.message_type,
            )
            return False, None

        path = self.blob_store.destination(self.account, category)
        url = await self.blob_store.upload(media.data, media.file_name, path)
        return True, url
