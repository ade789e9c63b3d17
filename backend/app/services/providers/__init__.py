"""Video provider adapters - public API exports"""
from app.services.providers.base import (
    BaseVideoProvider,
    ProviderName,
    ProviderResult,
    ProviderStatus,
)
from app.services.providers.registry import ProviderRegistry
from app.services.providers.unified import UnifiedVideoService

__all__ = [
    "BaseVideoProvider",
    "ProviderName",
    "ProviderResult",
    "ProviderStatus",
    "ProviderRegistry",
    "UnifiedVideoService",
]
