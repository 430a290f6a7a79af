"""FTP blob store.

Uploads media bytes to the hosting account and maps the storage path to the
public URL the webhook consumer can download from. Every upload opens its own
FTP connection and always closes it; failures are logged and reported as
``None`` so callers never see an exception.
"""

import asyncio
from pathlib import PurePosixPath

import aioftp
import structlog

from gateway.config import settings

logger = structlog.get_logger()


class FtpBlobStore:
    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        *,
        port: int = 21,
        public_base_url: str = "",
        root: str = "/public_html",
        timeout: float = 60.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.public_base_url = public_base_url
        self.root = root
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "FtpBlobStore":
        return cls(
            settings.FTP_HOST,
            settings.FTP_USER,
            settings.FTP_PASSWORD,
            port=settings.FTP_PORT,
            public_base_url=settings.FTP_PATH_URL,
            root=settings.FTP_ROOT,
            timeout=settings.UPLOAD_TIMEOUT_SECONDS,
        )

    def destination(self, account: str, category: str) -> str:
        """Upload directory for *account*, e.g. "/public_html/acme/documentos"."""
        return f"{self.root.rstrip('/')}/{account}/{category}"

    def public_url(self, path: str, file_name: str) -> str:
        relative = path.replace(self.root, "", 1).rstrip("/")
        return f"{self.public_base_url.rstrip('/')}{relative}/{file_name}"

    async def upload(self, data: bytes, file_name: str, path: str) -> str | None:
        """Store *data* as ``path/file_name``; return its public URL or None."""
        if file_name in ("", ".", "..") or PurePosixPath(file_name).name != file_name:
            logger.warning("ftp_upload_rejected", path=path, file_name=file_name)
            return None

        try:
            await asyncio.wait_for(self._transfer(data, file_name, path), self.timeout)
        except Exception:
            logger.warning("ftp_upload_failed", path=path, file_name=file_name, exc_info=True)
            return None

        url = self.public_url(path, file_name)
        logger.info("ftp_upload_done", url=url, size=len(data))
        return url

    async def _transfer(self, data: bytes, file_name: str, path: str) -> None:
        async with aioftp.Client.context(
            self.host, self.port, self.user, self.password
        ) as client:
            await client.make_directory(path)
            async with client.upload_stream(f"{path.rstrip('/')}/{file_name}") as stream:
                await stream.write(data)
