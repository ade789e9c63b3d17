"""Single entry point for text-to-video and avatar generation across providers"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from app.core.config import RENDERS_DIR
from app.services.providers.base import ProviderName, ProviderResult, ProviderStatus
from app.services.providers.downloads import download_media, media_filename
from app.services.providers.registry import ProviderRegistry

providers_logger = logging.getLogger("providers")


class UnifiedVideoService:
    """Dispatches to a named provider and stores finished videos under /renders"""

    def __init__(self, registry: ProviderRegistry, renders_dir: Path = RENDERS_DIR,
                 download_transport: Optional[httpx.AsyncBaseTransport] = None):
        self.registry = registry
        self.renders_dir = Path(renders_dir)
        self._download_transport = download_transport

    async def generate(self, provider: Union[str, ProviderName], options: Dict[str, Any]) -> ProviderResult:
        adapter = self.registry.get(provider)
        if adapter is None:
            return ProviderResult.failure(f"Unknown provider: {provider}")

        result = await adapter.generate(options)
        return await self._with_local_copy(result, adapter.name)

    async def check_status(self, provider: Union[str, ProviderName], request_id: str) -> ProviderResult:
        adapter = self.registry.get(provider)
        if adapter is None:
            return ProviderResult.failure(f"Unknown provider: {provider}", request_id=request_id)

        result = await adapter.check_status(request_id)
        return await self._with_local_copy(result, adapter.name)

    def list_providers(self) -> List[Dict[str, Any]]:
        return [adapter.describe() for adapter in self.registry]

    async def _with_local_copy(self, result: ProviderResult, provider: ProviderName) -> ProviderResult:
        """Download a finished video. Download failures leave the remote URL in place."""
        if result.status != ProviderStatus.SUCCESS or not result.video_url:
            return result

        filename = media_filename(f"video_{provider.value}", "mp4")
        saved = await download_media(result.video_url, self.renders_dir, filename,
                                     transport=self._download_transport)
        if saved is not None:
            result.local_path = f"/renders/{saved.name}"
        else:
            providers_logger.warning(f"Keeping remote URL for {provider.value} request {result.request_id}")
        return result
