# card_studio/infrastructure/imagekit/upload_file.py
import logging
from typing import Callable, Optional

import aiohttp

from card_studio.config.settings import settings
from card_studio.domain.errors import UploadRejected
from card_studio.infrastructure.imagekit.auth import UploadCredentials

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [IMAGEKIT] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

UPLOAD_FAILED_MESSAGE = "Upload failed."


class UploadClient:
    def __init__(
        self,
        upload_url: str = None,
        folder: str = None,
        timeout: float = None,
        session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession,
    ):
        self.upload_url = upload_url or settings.IMAGEKIT_UPLOAD_URL
        self.folder = folder or settings.UPLOAD_FOLDER
        self.timeout = settings.REQUEST_TIMEOUT if timeout is None else timeout
        self.session_factory = session_factory

    def build_form(
        self,
        content: bytes,
        file_name: str,
        content_type: Optional[str],
        public_key: str,
        credentials: UploadCredentials,
    ) -> aiohttp.FormData:
        form = aiohttp.FormData()
        form.add_field("file", content, filename=file_name, content_type=content_type or "application/octet-stream")
        form.add_field("fileName", file_name)
        form.add_field("publicKey", public_key)
        form.add_field("signature", credentials.signature)
        form.add_field("token", credentials.token)
        form.add_field("expire", str(credentials.expire))
        form.add_field("folder", self.folder)
        form.add_field("useUniqueFileName", "true")
        return form

    async def upload(
        self,
        content: bytes,
        file_name: str,
        content_type: Optional[str],
        public_key: str,
        credentials: UploadCredentials,
    ) -> str:
        """Send one file to the image host and return its public URL."""
        form = self.build_form(content, file_name, content_type, public_key, credentials)
        try:
            async with self.session_factory() as session:
                async with session.post(self.upload_url, data=form, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                    try:
                        payload = await response.json(content_type=None)
                    except ValueError:
                        payload = None
                    status = response.status
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.warning(f"Upload of '{file_name}' failed: {type(e).__name__}: {e}")
            raise UploadRejected(UPLOAD_FAILED_MESSAGE) from e

        if status >= 300 or not isinstance(payload, dict) or not payload.get("url"):
            message = payload.get("message") if isinstance(payload, dict) else None
            logger.warning(f"Upload of '{file_name}' rejected (HTTP {status}): {message}")
            raise UploadRejected(message or UPLOAD_FAILED_MESSAGE)

        logger.info(f"Uploaded '{file_name}' to {payload['url']}")
        return payload["url"]
