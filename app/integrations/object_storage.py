import asyncio
import logging
import mimetypes
import re
import secrets
import time
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from app.exceptions import UpstreamFailure

logger = logging.getLogger(__name__)

CATEGORY_PATTERN = re.compile(r"^[a-z0-9_-]+$")


class LocalObjectStorage:
    """
    Media store on the local disk, published under a public base URL.

    Initialization runs once as a background task started at application
    startup; every operation awaits that task with a bounded timeout, and a
    failed or slow initialization surfaces as UpstreamFailure.
    """

    def __init__(self, root: Path, base_url: str, init_timeout: float = 5.0):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.init_timeout = init_timeout
        self._ready: Optional[asyncio.Future] = None

    def start(self) -> asyncio.Future:
        if self._ready is None:
            self._ready = asyncio.ensure_future(self._initialize())
        return self._ready

    async def _initialize(self) -> None:
        await aiofiles.os.makedirs(self.root, exist_ok=True)
        logger.info("Object storage ready at %s", self.root.resolve())

    async def wait_ready(self) -> None:
        ready = self.start()
        try:
            await asyncio.wait_for(asyncio.shield(ready), timeout=self.init_timeout)
        except asyncio.TimeoutError:
            raise UpstreamFailure("Object storage is not ready")
        except OSError as e:
            logger.error("Object storage initialization failed: %s", e)
            raise UpstreamFailure("Object storage unavailable")

    async def store(self, data: bytes, filename: str, category: str, mime_type: str) -> str:
        if not CATEGORY_PATTERN.match(category):
            raise ValueError(f"Invalid storage category: {category!r}")

        await self.wait_ready()

        extension = Path(filename or "").suffix.lower() or (mimetypes.guess_extension(mime_type or "") or "")
        object_name = f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{extension}"
        directory = self.root / category

        try:
            await aiofiles.os.makedirs(directory, exist_ok=True)
            async with aiofiles.open(directory / object_name, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("Failed to store %s/%s: %s", category, object_name, e)
            raise UpstreamFailure(f"Failed to upload file: {e}")

        url = f"{self.base_url}/{category}/{object_name}"
        logger.info("Stored %s (%s, %d bytes)", url, mime_type, len(data))
        return url

    async def delete(self, public_url: str) -> None:
        """Remove the object behind public_url; unknown or missing objects are ignored."""
        if not public_url or not public_url.startswith(self.base_url + "/"):
            return

        await self.wait_ready()

        root = self.root.resolve()
        path = (root / public_url[len(self.base_url) + 1:]).resolve()
        if root not in path.parents:
            return

        try:
            await aiofiles.os.remove(path)
            logger.info("Deleted %s", public_url)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise UpstreamFailure(f"Failed to delete file: {e}")
