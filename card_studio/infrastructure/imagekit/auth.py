# card_studio/infrastructure/imagekit/auth.py
"""Upload credentials for ImageKit's client-side upload API.

``sign_upload_credentials`` is what the relay endpoint serves; the private key
never leaves the server. ``AuthRelayClient`` is the upload path's side of the
same contract: it fetches a fresh credential set before each upload.
"""
import logging
import time
from functools import lru_cache
from typing import Callable, Optional

import aiohttp
from imagekitio import ImageKit
from pydantic import BaseModel, ValidationError

from card_studio.config.settings import settings
from card_studio.domain.errors import AuthUnavailable

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [IMAGEKIT] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

AUTH_UNAVAILABLE_MESSAGE = "Image host auth failed. Is the server running?"


class UploadCredentials(BaseModel):
    signature: str
    token: str
    expire: int


@lru_cache(maxsize=1)
def imagekit_client() -> ImageKit:
    # Configured once from settings; callers check missing_imagekit_settings() first
    return ImageKit(
        private_key=settings.IMAGEKIT_PRIVATE_KEY,
        public_key=settings.IMAGEKIT_PUBLIC_KEY,
        url_endpoint=settings.IMAGEKIT_URL_ENDPOINT,
    )


def sign_upload_credentials(
    client: Optional[ImageKit] = None,
    token: Optional[str] = None,
    expire: Optional[int] = None,
    ttl_seconds: Optional[int] = None,
) -> UploadCredentials:
    client = client or imagekit_client()
    if expire is None:
        ttl = settings.AUTH_TOKEN_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        expire = int(time.time()) + ttl
    params = client.get_authentication_parameters(token=token or "", expire=expire)
    return UploadCredentials.model_validate(params)


def missing_imagekit_settings() -> list:
    required = {
        "IMAGEKIT_PUBLIC_KEY": settings.IMAGEKIT_PUBLIC_KEY,
        "IMAGEKIT_PRIVATE_KEY": settings.IMAGEKIT_PRIVATE_KEY,
        "IMAGEKIT_URL_ENDPOINT": settings.IMAGEKIT_URL_ENDPOINT,
    }
    return [name for name, value in required.items() if not value]


class AuthRelayClient:
    def __init__(self, base_url: str, timeout: float = None, session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession):
        self.base_url = base_url.rstrip("/")
        self.timeout = settings.REQUEST_TIMEOUT if timeout is None else timeout
        self.session_factory = session_factory

    async def fetch(self) -> UploadCredentials:
        url = f"{self.base_url}/auth"
        try:
            async with self.session_factory() as session:
                async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                    if response.status >= 300:
                        logger.warning(f"Auth relay {url} answered HTTP {response.status}")
                        raise AuthUnavailable(AUTH_UNAVAILABLE_MESSAGE)
                    payload = await response.json()
            return UploadCredentials.model_validate(payload)
        except AuthUnavailable:
            raise
        except (aiohttp.ClientError, TimeoutError, ValidationError, ValueError) as e:
            logger.warning(f"Auth relay {url} unreachable: {type(e).__name__}: {e}")
            raise AuthUnavailable(AUTH_UNAVAILABLE_MESSAGE) from e
