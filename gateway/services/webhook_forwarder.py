import httpx
import structlog

from gateway.config import settings
from gateway.models.records import CanonicalRecord

logger = structlog.get_logger()


class WebhookForwarder:
    """Best-effort POST of Canonical Records to WEBHOOK_URL.

    Delivery is fire-and-forget: the response status is not inspected, errors
    are logged and swallowed, and nothing is retried.
    """

    def __init__(self, url: str | None = None, timeout: float | None = None) -> None:
        self.url = url or settings.WEBHOOK_URL
        self.timeout = timeout if timeout is not None else settings.WEBHOOK_TIMEOUT_SECONDS
        # Populated by startup(); None until then
        self._client: httpx.AsyncClient | None = None

    async def startup(self) -> None:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=5.0),
            headers={"Content-Type": "application/json"},
        )

    async def shutdown(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("WebhookForwarder not initialized, call startup() first")
        return self._client

    async def forward(self, record: CanonicalRecord) -> None:
        log = logger.bind(message_id=record.messageId)
        try:
            resp = await self.client.post(self.url, json=record.to_payload())
        except Exception:
            log.warning("webhook_delivery_failed", url=self.url, exc_info=True)
            return
        log.info("webhook_delivered", status=resp.status_code)
