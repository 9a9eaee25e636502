# card_studio/infrastructure/render/image_loader.py
import asyncio
import base64
import binascii
import logging
import os
from typing import Callable, Dict

import aiofiles
import aiohttp

from card_studio.config.settings import settings
from card_studio.domain.errors import ExportFailed

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


class ImageLoader:
    """Resolves slot source references (URL, local path or data URL) to bytes.

    Any reference that cannot be read would leave a hole in the exported card,
    so the whole export fails instead.
    """

    def __init__(self, timeout: float = None, session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession):
        self.timeout = settings.REQUEST_TIMEOUT if timeout is None else timeout
        self.session_factory = session_factory

    async def _load_one(self, src: str, session) -> bytes:
        try:
            if src.startswith(("http://", "https://")):
                async with session.get(src, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                    response.raise_for_status()
                    return await response.read()
            if src.startswith("data:image"):
                _, encoded = src.split(",", 1)
                return base64.b64decode(encoded, validate=False)
            if os.path.isfile(src):
                async with aiofiles.open(src, "rb") as f:
                    return await f.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError, binascii.Error) as e:
            logger.warning(f"Failed to load image from '{src[:70]}': {type(e).__name__}")
            raise ExportFailed(
                "A photo could not be read for export. Its host may not allow cross-origin access."
            ) from e
        logger.warning(f"Unsupported image source '{src[:70]}'")
        raise ExportFailed("A photo has an unsupported source and cannot be exported.")

    async def load_many(self, sources: Dict[str, str]) -> Dict[str, bytes]:
        if not sources:
            return {}
        async with self.session_factory() as session:
            keys = list(sources)
            results = await asyncio.gather(*(self._load_one(sources[k], session) for k in keys))
        return dict(zip(keys, results))
