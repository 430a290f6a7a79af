"""Canonical Record: the JSON shape posted to the webhook."""

from pydantic import BaseModel


class TextContent(BaseModel):
    message: str


class LocationContent(BaseModel):
    longitude: float
    latitude: float
    name: str | None
    address: str
    url: str = ""                            # no reverse geocoding


class SequenceContent(BaseModel):
    low: int = 0
    high: int = 0
    unsigned: bool = False


class LiveLocationContent(BaseModel):
    longitude: float
    latitude: float
    sequence: SequenceContent
    caption: str


class DocumentContent(BaseModel):
    caption: str | None
    documentUrl: str | None                  # None when the upload failed
    mimeType: str
    title: str
    pageCount: int
    fileName: str


class ImageContent(BaseModel):
    imageUrl: str | None
    thumbnailUrl: str | None
    caption: str
    mimeType: str
    viewOnce: bool
    width: int
    height: int


VARIANT_FIELDS = ("text", "location", "liveLocation", "document", "image")


class CanonicalRecord(BaseModel):
    messageId: str
    phone: str                               # sender's user part, no server suffix
    fromMe: bool
    moment: int                              # epoch milliseconds
    senderName: str
    forwarded: bool

    text: TextContent | None = None
    location: LocationContent | None = None
    liveLocation: LiveLocationContent | None = None
    document: DocumentContent | None = None
    image: ImageContent | None = None

    def to_payload(self) -> dict:
        """Dump for the webhook; unused variants are omitted, null URLs are kept."""
        return self.model_dump(
            exclude={name for name in VARIANT_FIELDS if getattr(self, name) is None}
        )
