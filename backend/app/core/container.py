"""Composition root: every service and scheduler is built once here"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx
from fastapi import Request

from app.services.image_service import ImageService
from app.services.providers.registry import ProviderRegistry
from app.services.providers.unified import UnifiedVideoService
from app.services.script_service import ScriptService
from app.services.social.instagram import InstagramService
from app.services.social.social_service import SocialMediaService
from app.services.social.youtube import YouTubeService
from app.services.topic_script import TopicScriptService
from app.services.tts_service import TTSService
from app.tasks.auto_post import AutoPostScheduler
from app.tasks.scheduled import ScheduledTask
from app.tasks.video_poller import VideoPollingService
from app.core.config import settings

logger = logging.getLogger(__name__)
images_logger = logging.getLogger("images")

IMAGE_CLEANUP_INTERVAL = 24 * 60 * 60


@dataclass
class Container:
    registry: ProviderRegistry
    unified: UnifiedVideoService
    scripts: ScriptService
    topics: TopicScriptService
    images: ImageService
    tts: TTSService
    youtube: YouTubeService
    instagram: InstagramService
    social: SocialMediaService
    poller: VideoPollingService
    auto_post: AutoPostScheduler
    image_cleanup: Optional[ScheduledTask] = field(default=None)

    def __post_init__(self):
        if self.image_cleanup is None:
            self.image_cleanup = ScheduledTask("image-cleanup", IMAGE_CLEANUP_INTERVAL, self.cleanup_images)

    @classmethod
    def build(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "Container":
        registry = ProviderRegistry.from_settings(transport=transport)
        unified = UnifiedVideoService(registry, download_transport=transport)
        youtube = YouTubeService(transport=transport)
        instagram = InstagramService(transport=transport)
        social = SocialMediaService(youtube, instagram)

        container = cls(
            registry=registry,
            unified=unified,
            scripts=ScriptService.from_settings(transport=transport),
            topics=TopicScriptService(settings.GROQ_API_KEY, transport=transport),
            images=ImageService.from_settings(transport=transport),
            tts=TTSService.from_settings(transport=transport),
            youtube=youtube,
            instagram=instagram,
            social=social,
            poller=VideoPollingService(unified),
            auto_post=AutoPostScheduler(social),
        )
        available = [p.name.value for p in registry.available()]
        logger.info(f"Container ready - video providers available: {available or 'none'}")
        return container

    def start_schedulers(self) -> None:
        self.poller.start()
        self.auto_post.start()
        self.image_cleanup.start()

    async def stop_schedulers(self) -> None:
        await self.poller.stop()
        await self.auto_post.stop()
        await self.image_cleanup.stop()

    async def cleanup_images(self) -> None:
        """Remove generated images older than a week"""
        removed = await asyncio.to_thread(self.images.cleanup_old_images)
        images_logger.debug(f"Image cleanup removed {removed} file(s)")


def get_container(request: Request) -> Container:
    """Dependency: the application's container"""
    return request.app.state.container
