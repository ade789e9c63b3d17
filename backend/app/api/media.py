"""Image and narration API routes"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.core.container import Container, get_container
from app.core.security import require_auth
from app.schemas.requests import ImageRequest, TTSRequest
from app.services.image_service import IMAGE_STYLES

logger = logging.getLogger(__name__)

images_router = APIRouter(prefix="/api/images", tags=["images"])
tts_router = APIRouter(prefix="/api/tts", tags=["tts"])


@images_router.post("/generate")
async def generate_image(
    request_data: ImageRequest,
    user_id: int = Depends(require_auth),
    container: Container = Depends(get_container)
):
    """Generate one image, falling back across providers"""
    prompt = (request_data.prompt or "").strip()
    if not prompt:
        raise HTTPException(400, "Prompt is required")
    if request_data.style not in IMAGE_STYLES:
        raise HTTPException(400, f"Invalid style. Must be one of: {', '.join(IMAGE_STYLES)}")

    image = await container.images.generate_image(
        prompt, style=request_data.style, aspect_ratio=request_data.aspectRatio, provider=request_data.provider
    )
    return {"success": True, "image": image}


@images_router.get("/providers")
def image_providers(user_id: int = Depends(require_auth), container: Container = Depends(get_container)):
    return {"success": True, "providers": container.images.get_available_providers()}


@tts_router.post("/synthesize")
async def synthesize(
    request_data: TTSRequest,
    user_id: int = Depends(require_auth),
    container: Container = Depends(get_container)
):
    """Narrate text. A mock result means no provider produced audio."""
    text = (request_data.text or "").strip()
    if not text:
        raise HTTPException(400, "Text is required")

    audio = await container.tts.synthesize(
        text,
        language_code=request_data.languageCode,
        voice_name=request_data.voiceName,
        gender=request_data.gender,
        speaking_rate=request_data.speakingRate,
        provider=request_data.provider,
    )
    return {"success": not audio.get("isMock"), "audio": audio}
