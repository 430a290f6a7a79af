"""Unit tests for gateway/services/normalizer.py.

The blob store and media fetcher are AsyncMocks; the connection is an opaque
MagicMock since only the fetcher talks to it.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from gateway.models.events import InboundEvent
from gateway.services.blob_store import FtpBlobStore
from gateway.services.media_fetcher import MediaFetcher, MediaFile
from gateway.services.normalizer import EventNormalizer

SENDER = "5511999999999@s.whatsapp.net"
UPLOADED_URL = "https://cdn.test/acme/documentos/contract.pdf"


def _event(message: dict, **overrides) -> InboundEvent:
    raw = {
        "key": {"remoteJid": SENDER, "fromMe": False, "id": "MSG-1"},
        "message": message,
        "pushName": "Maria",
        "messageTimestamp": 1700000000,
    }
    raw.update(overrides)
    return InboundEvent.from_raw(raw)


def _normalizer(media: MediaFile | None = None, url: str | None = UPLOADED_URL):
    blob_store = FtpBlobStore("ftp.test", "acme", "pw", public_base_url="https://cdn.test")
    blob_store.upload = AsyncMock(return_value=url)
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=media)
    normalizer = EventNormalizer(
        blob_store, fetcher, account="acme", documents_dir="documentos", images_dir="imagem_rosto"
    )
    return normalizer, blob_store, fetcher


CONNECTION = MagicMock()


# ---------------------------------------------------------------------------
# Common fields
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_text_record_common_fields():
    normalizer, _, _ = _normalizer()
    record = await normalizer.normalize(_event({"conversation": "hello"}), CONNECTION)

    assert record.phone == "5511999999999"
    assert record.text.message == "hello"
    assert record.messageId == "MSG-1"
    assert record.fromMe is False
    assert record.moment == 1700000000 * 1000
    assert record.senderName == "Maria"
    assert record.forwarded is False


@pytest.mark.asyncio
async def test_moment_falls_back_to_wall_clock():
    normalizer, _, _ = _normalizer()
    event = _event({"conversation": "hi"}, messageTimestamp=None)

    with patch("gateway.services.normalizer.time.time", return_value=1234.5):
        record = await normalizer.normalize(event, CONNECTION)

    assert record.moment == 1234500


@pytest.mark.asyncio
async def test_same_event_twice_gives_identical_records():
    normalizer, _, _ = _normalizer()
    event = _event({"extendedTextMessage": {"text": "again", "contextInfo": {"isForwarded": True}}})

    first = await normalizer.normalize(event, CONNECTION)
    second = await normalizer.normalize(event, CONNECTION)

    assert first == second
    assert first.forwarded is True


# ---------------------------------------------------------------------------
# Location variants
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_location_record_has_empty_url():
    normalizer, _, _ = _normalizer()
    msg = {
        "locationMessage": {
            "degreesLatitude": -23.5,
            "degreesLongitude": -46.6,
            "name": "Office",
            "address": "Av. Paulista, 1000",
        }
    }
    record = await normalizer.normalize(_event(msg), CONNECTION)

    assert record.location.latitude == -23.5
    assert record.location.longitude == -46.6
    assert record.location.name == "Office"
    assert record.location.address == "Av. Paulista, 1000"
    assert record.location.url == ""


@pytest.mark.asyncio
async def test_live_location_sequence_defaults_to_zero():
    normalizer, _, _ = _normalizer()
    msg = {"liveLocationMessage": {"degreesLatitude": 1.0, "degreesLongitude": 2.0}}
    record = await normalizer.normalize(_event(msg), CONNECTION)

    payload = record.to_payload()
    assert payload["liveLocation"]["sequence"] == {"low": 0, "high": 0, "unsigned": False}
    assert payload["liveLocation"]["caption"] == ""


# ---------------------------------------------------------------------------
# Media variants
# ---------------------------------------------------------------------------

DOCUMENT = {
    "documentMessage": {
        "mimetype": "application/pdf",
        "title": "Contract",
        "pageCount": 2,
        "fileName": "contract.pdf",
    }
}
IMAGE = {"imageMessage": {"mimetype": "image/jpeg", "caption": "selfie", "width": 10, "height": 20}}


@pytest.mark.asyncio
async def test_document_uploads_to_documents_dir():
    media = MediaFile(data=b"%PDF", file_name="MSG-1-contract.pdf")
    normalizer, blob_store, _ = _normalizer(media=media)

    record = await normalizer.normalize(_event(DOCUMENT), CONNECTION)

    blob_store.upload.assert_awaited_once_with(b"%PDF", "MSG-1-contract.pdf", "/public_html/acme/documentos")
    assert record.document.documentUrl == UPLOADED_URL
    assert record.document.fileName == "contract.pdf"
    assert record.document.pageCount == 2
    assert record.document.caption is None


@pytest.mark.asyncio
async def test_document_name_with_parent_segments_stays_in_documents_dir():
    blob_store = FtpBlobStore("ftp.test", "acme", "pw", public_base_url="https://cdn.test")
    normalizer = EventNormalizer(
        blob_store, MediaFetcher(), account="acme", documents_dir="documentos", images_dir="imagem_rosto"
    )
    connection = MagicMock()
    connection.download_media = AsyncMock(return_value=b"<html>")
    event = _event({"documentMessage": {"mimetype": "text/html", "fileName": "../../index.html"}})

    with patch.object(blob_store, "_transfer", new_callable=AsyncMock) as mock_transfer:
        record = await normalizer.normalize(event, connection)

    mock_transfer.assert_awaited_once_with(b"<html>", "MSG-1-index.html", "/public_html/acme/documentos")
    assert record.document.documentUrl == "https://cdn.test/acme/documentos/MSG-1-index.html"
    assert record.document.fileName == "../../index.html"


@pytest.mark.asyncio
async def test_document_upload_failure_keeps_record_with_null_url():
    media = MediaFile(data=b"%PDF", file_name="contract.pdf")
    normalizer, _, _ = _normalizer(media=media, url=None)

    record = await normalizer.normalize(_event(DOCUMENT), CONNECTION)

    assert record is not None
    payload = record.to_payload()
    assert "documentUrl" in payload["document"]
    assert payload["document"]["documentUrl"] is None


@pytest.mark.asyncio
async def test_image_without_media_yields_no_record():
    normalizer, blob_store, _ = _normalizer(media=None)

    record = await normalizer.normalize(_event(IMAGE), CONNECTION)

    assert record is None
    blob_store.upload.assert_not_awaited()


@pytest.mark.asyncio
async def test_document_without_media_yields_no_record():
    normalizer, _, _ = _normalizer(media=None)
    assert await normalizer.normalize(_event(DOCUMENT), CONNECTION) is None


@pytest.mark.asyncio
async def test_image_url_fills_primary_and_thumbnail():
    url = "https://cdn.test/acme/imagem_rosto/MSG-1.jpg"
    normalizer, blob_store, fetcher = _normalizer(media=MediaFile(b"\xff\xd8", "MSG-1.jpg"), url=url)

    record = await normalizer.normalize(_event(IMAGE), CONNECTION)

    assert blob_store.upload.await_args.args[2] == "/public_html/acme/imagem_rosto"
    assert record.image.imageUrl == url
    assert record.image.thumbnailUrl == url
    assert record.image.caption == "selfie"
    assert record.image.width == 10
    fetcher.fetch.assert_awaited_once()
    assert fetcher.fetch.await_args.args[1] is CONNECTION


# ---------------------------------------------------------------------------
# Unknown variant
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unknown_type_emits_common_fields_only():
    normalizer, _, _ = _normalizer()
    record = await normalizer.normalize(_event({"stickerMessage": {}}), CONNECTION)

    payload = record.to_payload()
    assert set(payload) == {"messageId", "phone", "fromMe", "moment", "senderName", "forwarded"}
