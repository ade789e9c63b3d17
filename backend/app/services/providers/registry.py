"""Provider registry: one adapter instance per ProviderName"""
from typing import Dict, Iterator, List, Optional, Union

import httpx

from app.core.config import settings
from app.services.providers.base import BaseVideoProvider, ProviderName
from app.services.providers.bytez import BytezVideoProvider
from app.services.providers.fal import FalVideoProvider
from app.services.providers.heygen import HeyGenProvider
from app.services.providers.replicate import ReplicateVideoProvider
from app.services.providers.skyreels import SkyReelsProvider

# Listing order: text-to-video first, then avatar
PROVIDER_ORDER = [
    ProviderName.BYTEZ,
    ProviderName.FAL,
    ProviderName.REPLICATE,
    ProviderName.HEYGEN,
    ProviderName.SKYREELS,
]


class ProviderRegistry:
    """Maps provider names to adapters. Built once by the container."""

    def __init__(self, providers: Dict[ProviderName, BaseVideoProvider]):
        self._providers = dict(providers)

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ProviderRegistry":
        return cls({
            ProviderName.BYTEZ: BytezVideoProvider(settings.BYTEZ_API_KEY, transport=transport),
            ProviderName.FAL: FalVideoProvider(settings.FAL_API_KEY, transport=transport),
            ProviderName.REPLICATE: ReplicateVideoProvider(settings.REPLICATE_API_KEY, transport=transport),
            ProviderName.HEYGEN: HeyGenProvider(settings.HEYGEN_API_KEY, transport=transport),
            ProviderName.SKYREELS: SkyReelsProvider(settings.SKYREELS_API_KEY, transport=transport),
        })

    @staticmethod
    def resolve(name: Union[str, ProviderName, None]) -> Optional[ProviderName]:
        """Parse a provider name, returning None for unknown values"""
        if isinstance(name, ProviderName):
            return name
        try:
            return ProviderName((name or "").strip().lower())
        except ValueError:
            return None

    def get(self, name: Union[str, ProviderName, None]) -> Optional[BaseVideoProvider]:
        key = self.resolve(name)
        return self._providers.get(key) if key else None

    def __contains__(self, name) -> bool:
        return self.get(name) is not None

    def __iter__(self) -> Iterator[BaseVideoProvider]:
        for name in PROVIDER_ORDER:
            if name in self._providers:
                yield self._providers[name]

    def available(self) -> List[BaseVideoProvider]:
        return [p for p in self if p.is_available()]
