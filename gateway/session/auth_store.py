import asyncio
import shutil
from pathlib import Path

import structlog

logger = structlog.get_logger()


class AuthStore:
    """Directory holding the transport's credential files.

    The file layout belongs to the transport library; the gateway only hands
    the directory to the connection factory and wipes it on logout.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_dir() and any(self.path.iterdir())

    async def clear(self) -> None:
        await asyncio.to_thread(shutil.rmtree, self.path, ignore_errors=True)
        logger.warning("auth_state_deleted", path=str(self.path))
