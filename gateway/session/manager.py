"""WhatsApp session lifecycle.

One SessionManager owns the single connection of the process:

    uninitialized → connecting → (qr issued) → open → closed → connecting ...

Every close restarts the session; a logout close wipes the credentials first
so the restart asks for a fresh pairing code. Events from a connection that
has already been replaced are ignored.
"""

import asyncio
from functools import partial
from typing import Any

import structlog
from tenacity import retry, wait_exponential

from gateway.errors import SendFailedError, SessionUnavailableError
from gateway.models.events import InboundEvent
from gateway.services.event_filter import ignore_reason
from gateway.services.normalizer import EventNormalizer
from gateway.services.webhook_forwarder import WebhookForwarder
from gateway.session import pairing
from gateway.session.auth_store import AuthStore
from gateway.session.transport import Connection, ConnectionFactory, ConnectionUpdate
from gateway.utils.jid import phone_to_jid

logger = structlog.get_logger()


class SessionState:
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


def _log_open_retry(retry_state) -> None:
    logger.warning(
        "session_open_retry",
        attempt=retry_state.attempt_number,
        error=repr(retry_state.outcome.exception()),
    )


class SessionManager:
    def __init__(
        self,
        connection_factory: ConnectionFactory,
        auth_store: AuthStore,
        normalizer: EventNormalizer,
        forwarder: WebhookForwarder,
        *,
        reconnect_delay: float = 0.0,
        max_concurrent_batches: int = 8,
    ) -> None:
        self._connection_factory = connection_factory
        self._auth_store = auth_store
        self._normalizer = normalizer
        self._forwarder = forwarder
        self._reconnect_delay = reconnect_delay

        self._connection: Connection | None = None
        self._state = SessionState.UNINITIALIZED
        self._last_qr: str | None = None

        self._start_lock = asyncio.Lock()
        self._creds_lock = asyncio.Lock()
        self._batch_slots = asyncio.Semaphore(max_concurrent_batches)
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Read-only views for the API layer
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        return self._state

    @property
    def last_qr(self) -> str | None:
        return self._last_qr

    @property
    def is_open(self) -> bool:
        return self._state == SessionState.OPEN and self._connection is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open a new connection and make it the current one."""
        async with self._start_lock:
            self._state = SessionState.CONNECTING
            stored = self._auth_store.exists()
            connection = await self._open_connection()
            self._connection = connection
            connection.on("connection.update", partial(self._on_connection_update, connection))
            connection.on("messages.upsert", partial(self._on_messages_upsert, connection))
            connection.on("creds.update", partial(self._on_creds_update, connection))
            logger.info(
                "session_connecting",
                auth_dir=str(self._auth_store.path),
                stored_credentials=stored,
            )

    def launch(self) -> None:
        """Run start() in the background (used from the app lifespan)."""
        self._spawn(self._start_logged())

    async def drain(self) -> None:
        """Wait for every in-flight background task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        connection, self._connection = self._connection, None
        if connection is not None:
            try:
                await connection.close()
            except Exception:
                logger.warning("session_close_failed", exc_info=True)

    @retry(wait=wait_exponential(multiplier=1, min=1, max=30), before_sleep=_log_open_retry)
    async def _open_connection(self) -> Connection:
        return await self._connection_factory(self._auth_store.path)

    async def _start_logged(self) -> None:
        try:
            await self.start()
        except Exception:
            logger.exception("session_start_failed")

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    def _is_current(self, connection: Connection) -> bool:
        return connection is self._connection

    async def _on_connection_update(self, connection: Connection, raw: dict[str, Any]) -> None:
        if not self._is_current(connection):
            logger.debug("stale_connection_update_ignored")
            return

        update = ConnectionUpdate.model_validate(raw or {})

        if update.qr:
            self._last_qr = update.qr
            logger.info("pairing_code_issued", hint="scan it in the terminal or via GET /qr")
            pairing.print_terminal(update.qr)

        if update.connection == "connecting":
            self._state = SessionState.CONNECTING
        elif update.connection == "open":
            self._state = SessionState.OPEN
            logger.info("session_open")
        elif update.connection == "close":
            await self._handle_close(update)

    async def _handle_close(self, update: ConnectionUpdate) -> None:
        self._state = SessionState.CLOSED
        self._connection = None
        status_code = update.lastDisconnect.statusCode if update.lastDisconnect else None
        log = logger.bind(status_code=status_code)

        if update.is_logged_out:
            log.warning("session_logged_out")
            async with self._creds_lock:
                await self._auth_store.clear()
        else:
            log.info("session_closed")

        if self._reconnect_delay > 0:
            await asyncio.sleep(self._reconnect_delay)
        await self.start()

    async def _on_creds_update(self, connection: Connection, _delta: Any = None) -> None:
        if not self._is_current(connection):
            return
        async with self._creds_lock:
            await connection.save_credentials()
        logger.debug("credentials_saved")

    async def _on_messages_upsert(self, connection: Connection, upsert: dict[str, Any]) -> None:
        if not self._is_current(connection):
            return
        messages = (upsert or {}).get("messages") or []
        if not messages:
            return
        # Only the first message of a batch is forwarded
        self._spawn(self._process_message(connection, messages[0]))

    # ------------------------------------------------------------------
    # Inbound pipeline
    # ------------------------------------------------------------------

    async def _process_message(self, connection: Connection, raw: dict[str, Any]) -> None:
        async with self._batch_slots:
            try:
                event = InboundEvent.from_raw(raw)
            except Exception:
                logger.warning("inbound_message_unparseable", exc_info=True)
                return

            log = logger.bind(message_id=event.message_id, message_type=event.message_type)
            reason = ignore_reason(event)
            if reason:
                log.debug("inbound_message_ignored", reason=reason)
                return

            try:
                record = await self._normalizer.normalize(event, connection)
            except Exception:
                log.exception("inbound_message_normalize_failed")
                return
            if record is None:
                return

            await self._forwarder.forward(record)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send_message(self, phone: str, text: str) -> str:
        """Send *text* to *phone*; return the recipient JID."""
        connection = self._connection
        if not self.is_open or connection is None:
            raise SessionUnavailableError(
                "WhatsApp session unavailable. Scan the QR code to connect."
            )

        jid = phone_to_jid(phone)
        try:
            await connection.send_text(jid, text)
        except Exception as exc:
            logger.error("send_message_failed", jid=jid, error=str(exc))
            raise SendFailedError(
                "Could not send the message. Check the session and the number (country + area code)."
            ) from exc

        logger.info("send_message_done", jid=jid)
        return jid
