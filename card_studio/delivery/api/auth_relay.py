# card_studio/delivery/api/auth_relay.py
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
import logging

from card_studio.infrastructure.imagekit.auth import missing_imagekit_settings, sign_upload_credentials

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

@router.get("/auth")
async def auth():
    missing = missing_imagekit_settings()
    if missing:
        logger.error(f"Auth relay called without ImageKit configuration: {', '.join(missing)}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "message": "Missing ImageKit environment variables. "
                "Set IMAGEKIT_PUBLIC_KEY, IMAGEKIT_PRIVATE_KEY, IMAGEKIT_URL_ENDPOINT."
            },
        )
    return sign_upload_credentials().model_dump()
