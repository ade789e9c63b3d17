"""Videos API routes: AI video, avatar and scene-based generation plus the user's library"""
import base64
import binascii
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.queue import add_to_queue
from app.core.config import IMAGES_DIR
from app.core.container import Container, get_container
from app.core.security import require_auth
from app.db.helpers import (
    as_utc, create_video, delete_video, find_video_by_request_id, get_user_videos, get_video, update_video,
)
from app.db.session import get_db
from app.models.video import Video
from app.schemas.requests import (
    AIVideoRequest, AvatarRequest, GenerateVideoRequest, PreviewRequest, ProviderTestRequest,
    TextToAvatarRequest, TextToVideoRequest,
)
from app.services.image_service import public_image_url
from app.services.providers.base import ProviderName, ProviderResult, ProviderStatus
from app.services.providers.downloads import media_filename
from app.services.providers.skyreels import SKYREELS_MODELS

logger = logging.getLogger(__name__)
providers_logger = logging.getLogger("providers")

router = APIRouter(prefix="/api/videos", tags=["videos"])

DEFAULT_AI_PROVIDER = "bytez"
AUDIO_SOURCES = ("tts", "upload")
TEST_PROMPT = "A cat walking through a garden, cinematic lighting, high quality"

DATA_URI = re.compile(r"^data:image/([A-Za-z+\-/]+);base64,(.+)$", re.DOTALL)


def video_to_dict(video: Video) -> Dict[str, Any]:
    return {
        "id": video.id,
        "title": video.title,
        "caption": video.caption,
        "niche": video.niche,
        "language": video.language,
        "duration": video.duration,
        "visualStyle": video.visual_style,
        "status": video.status,
        "videoUrl": video.video_url,
        "thumbnailUrl": video.thumbnail_url,
        "scenes": video.scenes or [],
        "metadata": video.job_metadata or {},
        "createdAt": as_utc(video.created_at),
        "updatedAt": as_utc(video.updated_at),
    }


def status_response(result: ProviderResult) -> Dict[str, Any]:
    response = {"success": not result.is_error, "status": result.status.value}
    if result.stored_url:
        response["videoUrl"] = result.stored_url
    if result.error:
        response["error"] = result.error
    return response


def save_data_uri_image(data_uri: str) -> str:
    """Write a base64 data URI into the images directory and return its public URL"""
    match = DATA_URI.match(data_uri or "")
    if not match:
        raise ValueError("Invalid base64 image")
    try:
        content = base64.b64decode(match.group(2), validate=True)
    except binascii.Error as e:
        raise ValueError("Invalid base64 image") from e

    extension = match.group(1).split("/")[-1].replace("jpeg", "jpg")
    IMAGES_DIR.mkdir(parents=True, exist_ok=True)
    filename = media_filename("image_upload", extension)
    (IMAGES_DIR / filename).write_bytes(content)
    return public_image_url(filename)


async def narrate_scenes(
    container: Container,
    scenes: List[Dict[str, Any]],
    language: str,
    voice_name: Optional[str] = None,
    speaking_rate: float = 1.0,
    gender: Optional[str] = None,
    illustrate: bool = False,
    style: str = "cinematic",
    image_provider: Optional[str] = None,
    fallback_prompt: str = "",
) -> List[Dict[str, Any]]:
    """Attach narration audio to every scene and, when asked, a generated background image"""
    narrated = []
    for scene in scenes:
        scene = dict(scene)
        narration = await container.tts.synthesize(
            scene.get("narration") or "",
            language_code=language,
            voice_name=voice_name,
            gender=gender,
            speaking_rate=speaking_rate,
        )
        scene["audioUrl"] = narration.get("audioUrl") or None
        scene["audioDuration"] = narration.get("duration", 0)

        if illustrate:
            image = await container.images.generate_image(
                scene.get("textOverlay") or scene.get("narration") or fallback_prompt,
                style=style,
                provider=image_provider,
            )
            scene["background"] = {"type": "image", "source": image["imageUrl"]}
        narrated.append(scene)
    return narrated


# ============================================================================
# PROVIDER CATALOG
# ============================================================================

@router.get("/providers")
def provider_catalog(user_id: int = Depends(require_auth), container: Container = Depends(get_container)):
    """Script, image, avatar and TTS providers with their availability"""
    avatars = [p for p in container.unified.list_providers() if p.get("isAvatar")]
    return {
        "success": True,
        "providers": {
            "script": container.scripts.get_available_providers(),
            "image": container.images.get_available_providers(),
            "avatar": avatars,
            "tts": container.tts.get_available_providers(),
        },
        "defaults": {
            "script": container.scripts.default_provider,
            "image": container.images.default_provider,
            "avatar": ProviderName.SKYREELS.value,
            "tts": container.tts.default_provider,
        },
    }


# ============================================================================
# AI VIDEO (text-to-video)
# ============================================================================

@router.get("/ai-video/providers")
def ai_video_providers(user_id: int = Depends(require_auth), container: Container = Depends(get_container)):
    """Every video provider with its availability"""
    return {"success": True, "providers": container.unified.list_providers()}


@router.get("/ai-video/status/{request_id}")
async def ai_video_status(
    request_id: str,
    provider: str = DEFAULT_AI_PROVIDER,
    user_id: int = Depends(require_auth),
    container: Container = Depends(get_container)
):
    """Query a provider job directly"""
    if container.registry.get(provider) is None:
        raise HTTPException(400, f"Unknown provider: {provider}")
    result = await container.unified.check_status(provider, request_id)
    return status_response(result)


@router.post("/ai-video/test")
async def test_ai_video_provider(
    request_data: ProviderTestRequest,
    user_id: int = Depends(require_auth),
    container: Container = Depends(get_container)
):
    """Submit a fixed prompt to one provider. Nothing is stored."""
    if not request_data.provider:
        raise HTTPException(400, "Provider is required")
    provider = container.registry.resolve(request_data.provider)
    if provider is None:
        raise HTTPException(400, f"Unknown provider: {request_data.provider}")

    result = await container.unified.generate(provider, {"prompt": TEST_PROMPT})
    providers_logger.info(f"Test generation on {provider.value}: {result.status.value}")
    return {
        "success": not result.is_error,
        "provider": provider.value,
        "status": result.status.value,
        "requestId": result.request_id or None,
        "videoUrl": result.stored_url,
        "error": result.error,
    }


@router.post("/ai-video", status_code=201)
@router.post("/ai-video/generate", status_code=201, include_in_schema=False)
async def generate_ai_video(
    request_data: AIVideoRequest,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Submit a text-to-video job and store it as a video row"""
    prompt = (request_data.prompt or "").strip()
    if not prompt:
        raise HTTPException(400, "Prompt is required")

    provider_name = request_data.provider or DEFAULT_AI_PROVIDER
    if container.registry.get(provider_name) is None:
        available = ", ".join(p.value for p in ProviderName)
        raise HTTPException(400, f"Unknown provider: {provider_name}. Available: {available}")
    provider = container.registry.resolve(provider_name).value

    options = {
        "prompt": prompt,
        "model": request_data.model,
        "duration": request_data.duration,
        "width": request_data.width,
        "height": request_data.height,
        "negativePrompt": request_data.negativePrompt,
    }
    result = await container.unified.generate(provider, {k: v for k, v in options.items() if v is not None})
    if result.is_error:
        raise HTTPException(500, {"message": "Video generation failed", "error": result.error})

    completed = result.status == ProviderStatus.SUCCESS
    metadata = {
        "kind": "ai_video",
        "aiVideoProvider": provider,
        "aiVideoModel": request_data.model,
        "aiVideoRequestId": result.request_id or None,
        "aiVideoUrl": result.video_url,
        "prompt": prompt,
    }
    if not metadata["aiVideoRequestId"]:
        # Synchronous providers may not hand back a job id; nothing to poll then
        metadata["aiVideoProvider"] = None

    video = create_video(
        user_id,
        metadata=metadata,
        db=db,
        title=f"AI Video: {prompt[:30]}...",
        caption=prompt[:200],
        niche="ai-generated",
        duration=request_data.duration or 30,
        visual_style="cinematic",
        status="completed" if completed else "processing",
        video_url=result.stored_url if completed else None,
        scenes=[{"narration": prompt, "type": "ai-video"}],
    )
    logger.info(f"AI video {video.id} created via {provider} ({video.status})")

    return {
        "success": True,
        "videoId": video.id,
        "message": "Video generated successfully" if completed
        else "Video generation started - processing in background",
        "status": video.status,
        "requestId": result.request_id,
        "videoUrl": video.video_url,
        "provider": provider,
        "model": request_data.model,
    }


# ============================================================================
# AVATAR
# ============================================================================

async def resolve_avatar_audio(container: Container, audio_source: Optional[str], text: Optional[str],
                               custom_audio_url: Optional[str], language: Optional[str],
                               voice_name: Optional[str], speaking_rate: float = 1.0,
                               gender: Optional[str] = None) -> str:
    """Audio URL for an avatar job: narrated text for tts, the caller's file for upload"""
    if audio_source == "upload":
        return custom_audio_url

    narration = await container.tts.synthesize(
        text,
        language_code=language or "en-US",
        voice_name=voice_name,
        gender=gender,
        speaking_rate=speaking_rate,
    )
    if narration.get("isMock") or not narration.get("audioUrl"):
        raise HTTPException(500, {"message": "Failed to generate audio for avatar video",
                                  "error": "TTS generation failed"})
    return narration["audioUrl"]


@router.get("/avatar/status/{request_id}")
async def avatar_status(
    request_id: str,
    provider: str = "heygen",
    user_id: int = Depends(require_auth),
    container: Container = Depends(get_container)
):
    adapter = container.registry.get("skyreels" if provider.startswith("skyreels") else provider)
    if adapter is None or not adapter.is_avatar:
        raise HTTPException(400, f"Unknown avatar provider: {provider}")
    result = await container.unified.check_status(adapter.name, request_id)
    return status_response(result)


@router.get("/avatar/result/{request_id}")
async def avatar_result(
    request_id: str,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Final video URL of a finished avatar job owned by the caller"""
    video = find_video_by_request_id(user_id, request_id, db=db)
    if video is None:
        raise HTTPException(404, "Video not found")

    provider = video.job_metadata.get("aiVideoProvider") or ProviderName.SKYREELS.value
    result = await container.unified.check_status(provider, request_id)
    if result.status != ProviderStatus.SUCCESS:
        raise HTTPException(400, {"message": "Video not ready", "error": result.error or result.status.value})
    return {
        "success": True,
        "requestId": request_id,
        "provider": provider,
        "status": result.status.value,
        "videoUrl": result.stored_url,
    }


@router.post("/avatar", status_code=201)
@router.post("/avatar/generate", status_code=201, include_in_schema=False)
async def generate_avatar_video(
    request_data: AvatarRequest,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Narrate (or take) the audio, then hand it to SkyReels or HeyGen"""
    audio_source = request_data.audioSource
    requested = (request_data.provider or "").lower()

    if audio_source not in AUDIO_SOURCES:
        raise HTTPException(400, "Audio source is required")
    if audio_source == "tts" and not (request_data.script or "").strip():
        raise HTTPException(400, "Script is required for TTS")
    if audio_source == "upload" and not request_data.customAudioUrl:
        raise HTTPException(400, "Audio file URL is required for upload source")
    if requested != "skyreels-text" and not (request_data.avatarImage or request_data.avatarId):
        raise HTTPException(400, "Avatar image is required for Image-to-Video generation")

    audio_url = await resolve_avatar_audio(
        container, audio_source, request_data.script, request_data.customAudioUrl,
        request_data.language, request_data.voiceName, request_data.speakingRate, request_data.gender,
    )

    options = {
        "audioUrl": audio_url,
        "avatarImage": request_data.avatarImage,
        "avatarId": request_data.avatarId,
        "prompt": request_data.prompt,
        "text": request_data.script,
    }

    candidates = []
    if requested.startswith("skyreels"):
        candidates.append(ProviderName.SKYREELS)
    candidates.append(ProviderName.HEYGEN)

    result: Optional[ProviderResult] = None
    used = None
    last_error = None
    for name in candidates:
        adapter = container.registry.get(name)
        if adapter is None or not adapter.is_available():
            if name == ProviderName.HEYGEN:
                last_error = last_error or "HeyGen API not configured. Please add HEYGEN_API_KEY to .env file."
            continue
        attempt_options = dict(options)
        if name == ProviderName.SKYREELS and requested == "skyreels-text":
            attempt_options["model"] = SKYREELS_MODELS["TEXT_TO_VIDEO"]
        attempt = await container.unified.generate(name, attempt_options)
        if not attempt.is_error:
            result, used = attempt, name.value
            break
        last_error = attempt.error
        providers_logger.warning(f"Avatar provider {name.value} failed: {attempt.error}")

    if result is None:
        raise HTTPException(500, {"message": "Failed to generate avatar video",
                                  "error": last_error or "All avatar providers failed"})

    script = (request_data.script or "").strip()
    title = request_data.title or (f"{script[:50]}..." if script else "Avatar Video")
    video = create_video(
        user_id,
        metadata={
            "kind": "avatar",
            "aiVideoProvider": used,
            "aiVideoRequestId": result.request_id,
            "audioSource": audio_source,
            "audioUrl": audio_url,
            "avatarImage": request_data.avatarImage,
            "script": request_data.script,
            "voiceName": request_data.voiceName,
            "speakingRate": request_data.speakingRate,
        },
        db=db,
        title=title,
        caption=script[:200] or None,
        niche="avatar-video",
        visual_style="avatar",
        status="processing",
        scenes=[{"narration": script, "type": "avatar"}],
    )
    logger.info(f"Avatar video {video.id} submitted to {used} (request {result.request_id})")

    return {
        "success": True,
        "videoId": video.id,
        "requestId": result.request_id,
        "provider": used,
        "message": "Avatar video generation started",
        "status": "processing",
        "content": {"title": title, "audioUrl": audio_url, "avatarImage": request_data.avatarImage},
    }


@router.post("/avatar/text-to-avatar", status_code=201)
async def generate_text_to_avatar(
    request_data: TextToAvatarRequest,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """SkyReels text-to-video avatar: no source image, the model draws the presenter"""
    text = (request_data.text or "").strip()
    if not text:
        raise HTTPException(400, "Text is required for text-to-avatar")
    if request_data.audioSource not in AUDIO_SOURCES:
        raise HTTPException(400, "Audio source is required")
    if request_data.audioSource == "upload" and not request_data.customAudioUrl:
        raise HTTPException(400, "Audio file URL is required for upload source")

    audio_url = await resolve_avatar_audio(
        container, request_data.audioSource, text, request_data.customAudioUrl,
        request_data.language, request_data.voiceName, request_data.speakingRate,
    )

    result = await container.unified.generate(ProviderName.SKYREELS, {
        "audioUrl": audio_url,
        "prompt": request_data.prompt,
        "text": text,
        "model": SKYREELS_MODELS["TEXT_TO_VIDEO"],
    })
    if result.is_error:
        raise HTTPException(500, {"message": "Failed to generate text-to-avatar video", "error": result.error})

    title = f"{text[:50]}..." if len(text) > 50 else text
    video = create_video(
        user_id,
        metadata={
            "kind": "avatar",
            "generationType": "text-to-avatar",
            "aiVideoProvider": ProviderName.SKYREELS.value,
            "aiVideoRequestId": result.request_id,
            "audioSource": request_data.audioSource,
            "audioUrl": audio_url,
            "script": text,
            "voiceName": request_data.voiceName,
            "speakingRate": request_data.speakingRate,
        },
        db=db,
        title=title,
        caption=text[:200],
        niche="text-to-avatar",
        language=request_data.language or "en-US",
        visual_style="avatar",
        status="processing",
        scenes=[{"narration": text, "type": "avatar"}],
    )
    logger.info(f"Text-to-avatar video {video.id} submitted (request {result.request_id})")

    return {
        "success": True,
        "videoId": video.id,
        "requestId": result.request_id,
        "message": "Text-to-avatar video generation started",
        "status": "processing",
        "content": {"title": title, "audioUrl": audio_url, "text": text},
    }


# ============================================================================
# SCENE-BASED GENERATION
# ============================================================================

@router.post("/generate", status_code=201)
async def generate_video(
    request_data: GenerateVideoRequest,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Write a script, narrate every scene and optionally illustrate it. Rendering happens elsewhere."""
    niche = (request_data.niche or "").strip()
    if not niche:
        raise HTTPException(400, "Niche is required")

    script = await container.scripts.generate_script(
        niche, request_data.duration, provider=request_data.scriptProvider, model=request_data.scriptModel
    )
    scenes = await narrate_scenes(
        container, script.get("scenes", []), request_data.language,
        voice_name=request_data.voiceName,
        speaking_rate=request_data.speakingRate,
        gender=request_data.gender,
        illustrate=request_data.generateImages,
        style=request_data.visualStyle,
        image_provider=request_data.imageProvider,
        fallback_prompt=niche,
    )

    video = create_video(
        user_id,
        metadata={
            "kind": "generated",
            "hashtags": script.get("hashtags") or [],
            "voiceName": request_data.voiceName,
            "speakingRate": request_data.speakingRate,
            "hasImages": request_data.generateImages,
            "scriptProvider": script.get("provider"),
        },
        db=db,
        title=script.get("title"),
        caption=script.get("caption"),
        niche=niche,
        language=request_data.language,
        duration=request_data.duration,
        visual_style=request_data.visualStyle,
        status="draft",
        scenes=scenes,
    )
    logger.info(f"Draft video {video.id} generated with {len(scenes)} scenes")
    return {"success": True, "videoId": video.id, "video": video_to_dict(video)}


@router.post("/text-to-video", status_code=201)
async def generate_text_to_video(
    request_data: TextToVideoRequest,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Scene video from a free-form prompt, optionally backed by the caller's own images"""
    prompt = (request_data.prompt or "").strip()
    if not prompt:
        raise HTTPException(400, "Prompt is required")

    try:
        image_urls = [save_data_uri_image(image) for image in request_data.images]
    except ValueError as e:
        raise HTTPException(400, {"message": "Invalid image data", "error": str(e)})

    script = await container.scripts.generate_from_prompt(
        prompt, request_data.duration, style=request_data.style, language=request_data.language
    )
    scenes = script.get("scenes") or []
    if not scenes:
        raise HTTPException(500, {"message": "Failed to generate text-to-video",
                                  "error": "Script has no scenes"})
    if image_urls:
        scenes = [
            {**scene, "background": {"type": "image", "source": image_urls[i % len(image_urls)]}}
            for i, scene in enumerate(scenes)
        ]
    scenes = await narrate_scenes(
        container, scenes, request_data.language,
        voice_name=request_data.voiceName,
        speaking_rate=request_data.speakingRate,
    )

    video = create_video(
        user_id,
        metadata={
            "kind": "generated",
            "generationType": "text-to-video",
            "hashtags": script.get("hashtags") or [],
            "voiceName": request_data.voiceName,
            "speakingRate": request_data.speakingRate,
            "hasImages": bool(image_urls),
            "images": image_urls,
            "prompt": prompt,
            "scriptProvider": script.get("provider"),
        },
        db=db,
        title=script.get("title"),
        caption=script.get("caption"),
        niche="text-to-video",
        language=request_data.language,
        duration=request_data.duration,
        visual_style=request_data.style,
        status="draft",
        scenes=scenes,
    )
    logger.info(f"Text-to-video draft {video.id} created with {len(scenes)} scenes")

    return {
        "success": True,
        "videoId": video.id,
        "message": "Text-to-video draft created",
        "status": video.status,
        "content": {
            "title": video.title,
            "caption": video.caption,
            "hashtags": script.get("hashtags") or [],
            "scenes": scenes,
            "voiceName": request_data.voiceName,
            "hasImages": bool(image_urls),
            "prompt": prompt,
        },
    }


@router.post("/preview")
async def preview_video(
    request_data: PreviewRequest,
    user_id: int = Depends(require_auth),
    container: Container = Depends(get_container)
):
    """Script only, nothing stored"""
    niche = (request_data.niche or "").strip()
    if not niche:
        raise HTTPException(400, "Niche is required")

    script = await container.scripts.generate_script(niche, request_data.duration)
    return {
        "success": True,
        "preview": {
            "title": script.get("title"),
            "caption": script.get("caption"),
            "hashtags": script.get("hashtags") or [],
            "scenes": script.get("scenes") or [],
            "duration": request_data.duration,
            "hasImages": request_data.generateImages,
        },
    }


# ============================================================================
# LIBRARY
# ============================================================================

@router.get("")
def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db)
):
    videos, total = get_user_videos(user_id, page=page, limit=limit, status=status, db=db)
    return {
        "success": True,
        "videos": [video_to_dict(v) for v in videos],
        "pagination": {"page": page, "limit": limit, "total": total, "totalPages": -(-total // limit)},
    }


@router.get("/{video_id}")
def get_video_details(video_id: str, user_id: int = Depends(require_auth), db: Session = Depends(get_db)):
    video = get_video(video_id, user_id=user_id, db=db)
    if not video:
        raise HTTPException(404, "Video not found")
    return {"success": True, "video": video_to_dict(video)}


router.add_api_route("/{video_id}/queue", add_to_queue, methods=["POST"], status_code=201, include_in_schema=False)


@router.get("/{video_id}/status")
async def get_video_status(
    video_id: str,
    user_id: int = Depends(require_auth),
    container: Container = Depends(get_container)
):
    """Current status, polling the provider once if the job is still processing"""
    status = await container.poller.check_video_now(video_id, user_id=user_id)
    if status is None:
        raise HTTPException(404, "Video not found")
    return {"success": True, **status}


@router.post("/{video_id}/regenerate")
async def regenerate_video(
    video_id: str,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Rewrite the script of a scene video with its stored voice and image settings"""
    video = get_video(video_id, user_id=user_id, db=db)
    if not video:
        raise HTTPException(404, "Video not found")

    metadata = video.job_metadata or {}
    if metadata.get("kind") not in (None, "generated"):
        raise HTTPException(400, "Only scene-based videos can be regenerated")
    voice_name = metadata.get("voiceName")
    speaking_rate = metadata.get("speakingRate") or 1.0
    has_images = bool(metadata.get("hasImages"))

    script = await container.scripts.generate_script(video.niche, video.duration or 30)
    scenes = await narrate_scenes(
        container, script.get("scenes", []), video.language or "en-US",
        voice_name=voice_name,
        speaking_rate=speaking_rate,
        illustrate=has_images,
        style=video.visual_style or "cinematic",
        fallback_prompt=video.niche,
    )

    video = update_video(
        video.id,
        db=db,
        metadata_changes={
            "kind": "generated",
            "hashtags": script.get("hashtags") or [],
            "voiceName": voice_name,
            "speakingRate": speaking_rate,
            "hasImages": has_images,
            "scriptProvider": script.get("provider"),
            "regeneratedAt": datetime.now(timezone.utc).isoformat(),
        },
        title=script.get("title"),
        caption=script.get("caption"),
        scenes=scenes,
        status="draft",
        video_url=None,
    )
    logger.info(f"Video {video.id} regenerated with {len(scenes)} scenes")

    return {
        "success": True,
        "videoId": video.id,
        "message": "Video regenerated",
        "status": video.status,
        "content": {
            "title": video.title,
            "caption": video.caption,
            "hashtags": script.get("hashtags") or [],
            "scenes": scenes,
        },
    }


@router.delete("/{video_id}")
def remove_video(video_id: str, user_id: int = Depends(require_auth), db: Session = Depends(get_db)):
    if not delete_video(video_id, user_id, db=db):
        raise HTTPException(404, "Video not found")
    return {"success": True, "message": "Video deleted successfully"}
