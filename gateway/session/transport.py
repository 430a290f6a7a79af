"""Contract between the session manager and the WhatsApp transport library.

The transport owns the wire protocol, encryption and the on-disk credential
schema. The gateway only needs a connection object that emits Baileys-style
events and accepts a few commands, built by a factory configured as
``TRANSPORT_FACTORY="package.module:callable"``.

Events (handler receives one argument):
    connection.update   {"connection": "connecting"|"open"|"close",
                         "qr": str | None,
                         "lastDisconnect": {"statusCode": int} | None}
    messages.upsert     {"messages": [<WebMessageInfo dict>, ...], "type": str}
    creds.update        opaque credential delta
"""

import importlib
from collections.abc import Awaitable, Callable
from enum import IntEnum
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel

EventHandler = Callable[[Any], Awaitable[None]]


class Connection(Protocol):
    def on(self, event: str, handler: EventHandler) -> None: ...

    async def send_text(self, jid: str, text: str) -> None: ...

    async def download_media(self, message: dict[str, Any]) -> bytes | None: ...

    async def save_credentials(self) -> None: ...

    async def close(self) -> None: ...


# Loads credentials from the auth directory and opens a connection
ConnectionFactory = Callable[[Path], Awaitable[Connection]]


class DisconnectReason(IntEnum):
    LOGGED_OUT = 401
    FORBIDDEN = 403
    CONNECTION_LOST = 408
    MULTIDEVICE_MISMATCH = 411
    CONNECTION_CLOSED = 428
    CONNECTION_REPLACED = 440
    BAD_SESSION = 500
    UNAVAILABLE_SERVICE = 503
    RESTART_REQUIRED = 515


class LastDisconnect(BaseModel):
    statusCode: int | None = None
    message: str | None = None


class ConnectionUpdate(BaseModel):
    connection: str | None = None
    qr: str | None = None
    lastDisconnect: LastDisconnect | None = None

    @property
    def is_logged_out(self) -> bool:
        return (
            self.lastDisconnect is not None
            and self.lastDisconnect.statusCode == DisconnectReason.LOGGED_OUT
        )


def load_connection_factory(path: str) -> ConnectionFactory:
    """Resolve ``"package.module:callable"`` to the factory it names."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"TRANSPORT_FACTORY must look like 'module:callable', got {path!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    if not callable(factory):
        raise TypeError(f"{path} is not callable")
    return factory
