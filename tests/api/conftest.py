"""API fixtures — app with in-memory sessions, no lifespan, fake collaborators."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from card_studio.domain.errors import UploadRejected
from card_studio.domain.session import SessionRegistry
from card_studio.domain.upload_service import UploadService
from card_studio.infrastructure.imagekit.auth import UploadCredentials
from card_studio.infrastructure.render.card_renderer import PillowCardRenderer
from card_studio.infrastructure.render.image_loader import ImageLoader
from card_studio.main import app


class FakeRelay:
    async def fetch(self):
        return UploadCredentials(signature="sig", token="tok", expire=1700000000)


class FakeUploader:
    """Accepts every file unless ``message`` is set, then rejects with it."""

    def __init__(self):
        self.message = None
        self.calls = []

    async def upload(self, content, file_name, content_type, public_key, credentials):
        self.calls.append(file_name)
        if self.message:
            raise UploadRejected(self.message)
        return f"https://ik.test/birthday-cards/{file_name}"


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest_asyncio.fixture
async def client(uploader):
    app.state.sessions = SessionRegistry(PillowCardRenderer(), ImageLoader())
    app.state.upload_service = UploadService(
        public_key="pk_test",
        api_base_url="http://relay.test",
        relay=FakeRelay(),
        uploader=uploader,
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
