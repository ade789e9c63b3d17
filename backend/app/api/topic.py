"""Topic-to-script API routes"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.container import Container, get_container
from app.core.security import get_session_user
from app.db.helpers import create_video
from app.db.session import get_db
from app.schemas.requests import TopicScriptRequest
from app.services.topic_script import NICHES, get_default_topics

logger = logging.getLogger(__name__)
scripts_logger = logging.getLogger("scripts")

router = APIRouter(prefix="/api/topic", tags=["topic"])


def save_script_draft(user_id: int, topic: str, niche: Optional[str], script: dict, db: Session) -> None:
    """Keep the script in the user's library as a draft. Failures only get logged."""
    try:
        create_video(
            user_id,
            metadata={
                "kind": "script",
                "topic": topic,
                "hashtags": script.get("hashtags") or [],
                "scriptData": script,
                "generatedAt": datetime.now(timezone.utc).isoformat(),
            },
            db=db,
            title=script.get("title"),
            caption=(script.get("sections") or {}).get("hook") or None,
            niche=niche or "General",
            duration=script.get("estimatedDuration"),
            visual_style="script-generated",
            status="draft",
            scenes=[{"type": "script", "topic": topic, "script": script}],
        )
    except Exception as e:
        db.rollback()
        scripts_logger.error(f"❌ Could not store topic script for user {user_id}: {e}",
                             extra={"user_id": user_id, "topic": topic})


@router.post("/script")
@router.post("/generate", include_in_schema=False)
async def generate_script_from_topic(
    request_data: TopicScriptRequest,
    request: Request,
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Generate a complete script from a topic or keyword"""
    topic = (request_data.topic or "").strip()
    if len(topic) < 3:
        raise HTTPException(400, "Topic must be at least 3 characters long")

    if not container.topics.is_available():
        raise HTTPException(503, {"message": "Script generation service is not configured",
                                  "error": "Groq API key required for AI script generation"})

    script = await container.topics.generate_script({
        "topic": topic,
        "niche": request_data.niche,
        "tone": request_data.tone,
        "length": request_data.length,
        "language": request_data.language,
    })
    if not script:
        raise HTTPException(500, {"message": "Failed to generate script",
                                  "error": "AI generation failed, please try again"})

    user_id = get_session_user(request)
    if user_id:
        save_script_draft(user_id, topic, request_data.niche, script, db)

    return {"success": True, "data": script, "message": "Script generated successfully"}


@router.get("/suggestions")
async def suggested_topics(
    niche: Optional[str] = None,
    count: int = 5,
    container: Container = Depends(get_container)
):
    """Viral topic ideas for a niche"""
    if not niche:
        raise HTTPException(400, "Niche is required")

    try:
        topics = await container.topics.get_suggested_topics(niche, count or 5)
    except Exception as e:
        scripts_logger.warning(f"Topic suggestions failed for {niche}: {e}")
        return {"success": True, "data": {"topics": get_default_topics("general")},
                "message": "Default topics returned"}

    return {"success": True, "data": {"topics": topics}, "message": "Topics fetched successfully"}


@router.get("/niches")
def niches():
    return {"success": True, "data": {"niches": NICHES}, "message": "Niches fetched successfully"}
