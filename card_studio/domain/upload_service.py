# card_studio/domain/upload_service.py
import logging
from typing import Optional

from card_studio.config.settings import settings
from card_studio.domain.composition_store import CompositionStore
from card_studio.domain.errors import CardStudioError, ConfigurationMissing
from card_studio.domain.models import CompositionSnapshot
from card_studio.infrastructure.imagekit.auth import AuthRelayClient
from card_studio.infrastructure.imagekit.upload_file import UploadClient

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [UPLOAD] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

MISSING_KEY_MESSAGE = "Missing ImageKit public key. Set IMAGEKIT_PUBLIC_KEY in the environment."
MISSING_API_MESSAGE = "Missing API base URL. Set API_BASE_URL in the environment."


class UploadService:
    """Uploads a file for one photo slot and places the hosted URL in it.

    Uploads for different slots run independently. Two uploads for the same
    slot are not cancelled against each other: whichever finishes last wins.
    A result whose slot was removed meanwhile is dropped.
    """

    def __init__(
        self,
        public_key: Optional[str] = None,
        api_base_url: Optional[str] = None,
        relay: Optional[AuthRelayClient] = None,
        uploader: Optional[UploadClient] = None,
    ):
        self.public_key = settings.IMAGEKIT_PUBLIC_KEY if public_key is None else public_key
        self.api_base_url = settings.API_BASE_URL if api_base_url is None else api_base_url
        self.relay = relay
        self.uploader = uploader or UploadClient()

    def _check_configuration(self) -> None:
        if not self.public_key:
            raise ConfigurationMissing(MISSING_KEY_MESSAGE)
        if not self.api_base_url:
            raise ConfigurationMissing(MISSING_API_MESSAGE)

    async def upload_to_slot(
        self,
        store: CompositionStore,
        index: int,
        content: bytes,
        file_name: str,
        content_type: Optional[str] = None,
    ) -> CompositionSnapshot:
        store.clear_error()
        slot_id = store.slot_id_at(index)

        try:
            self._check_configuration()
        except ConfigurationMissing as e:
            logger.error(e.message)
            return store.report_error(e.message)

        relay = self.relay or AuthRelayClient(self.api_base_url)
        store.set_uploading(slot_id, True)
        logger.info(f"Uploading '{file_name}' ({len(content)} bytes) into slot {slot_id}.")
        try:
            credentials = await relay.fetch()
            url = await self.uploader.upload(content, file_name, content_type, self.public_key, credentials)
            store.set_slot_image_by_id(
                slot_id,
                url,
                original_name=file_name,
                byte_size=len(content),
                mime_type=content_type,
            )
        except CardStudioError as e:
            logger.warning(f"Upload into slot {slot_id} failed: {e.message}")
            store.report_error(e.message)
        finally:
            store.set_uploading(slot_id, False)
        return store.snapshot()
