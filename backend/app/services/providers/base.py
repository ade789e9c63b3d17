"""Shared contract for external video generation providers"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings, is_key_configured
from app.core.metrics import provider_requests_counter

providers_logger = logging.getLogger("providers")


class ProviderName(str, Enum):
    """Video providers known to the registry"""
    BYTEZ = "bytez"
    FAL = "fal"
    REPLICATE = "replicate"
    HEYGEN = "heygen"
    SKYREELS = "skyreels"


class ProviderStatus(str, Enum):
    """Shared three-state vocabulary every provider status maps onto"""
    SUCCESS = "success"
    PROCESSING = "processing"
    ERROR = "error"


@dataclass
class ProviderResult:
    """Outcome of a generate or status call"""
    status: ProviderStatus
    request_id: str = ""
    video_url: Optional[str] = None
    local_path: Optional[str] = None
    error: Optional[str] = None
    provider: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.status == ProviderStatus.ERROR

    @property
    def stored_url(self) -> Optional[str]:
        """URL persisted on the job row: the local download when there is one"""
        return self.local_path or self.video_url

    @classmethod
    def success(cls, request_id: str, video_url: Optional[str], **kwargs) -> "ProviderResult":
        return cls(status=ProviderStatus.SUCCESS, request_id=request_id, video_url=video_url, **kwargs)

    @classmethod
    def processing(cls, request_id: str, **kwargs) -> "ProviderResult":
        return cls(status=ProviderStatus.PROCESSING, request_id=request_id, **kwargs)

    @classmethod
    def failure(cls, error: str, request_id: str = "", **kwargs) -> "ProviderResult":
        return cls(status=ProviderStatus.ERROR, request_id=request_id, error=error, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "status": self.status.value,
            "requestId": self.request_id,
            "videoUrl": self.video_url,
            "localPath": self.local_path,
            "error": self.error,
        }
        return {k: v for k, v in data.items() if v is not None}


class BaseVideoProvider(ABC):
    """Wraps one external HTTP API behind generate / check_status / is_available.

    Implementations never raise past this boundary: network failures, non-2xx
    responses and malformed payloads all come back as error results.
    """

    name: ProviderName
    display_name: str = ""
    key_name: str = ""
    is_text_to_video: bool = False
    is_avatar: bool = False

    def __init__(self, api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: Optional[float] = None):
        self.api_key = (api_key or "").strip()
        self._transport = transport
        self.timeout = timeout or settings.PROVIDER_HTTP_TIMEOUT

    def is_available(self) -> bool:
        return is_key_configured(self.api_key, self.key_name or self.name.value)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def generate(self, options: Dict[str, Any]) -> ProviderResult:
        """Submit a generation job"""
        if not self.is_available():
            return self._failed(f"{self.display_name} API key not configured")
        try:
            result = await self._generate(options)
        except httpx.HTTPStatusError as e:
            result = self._failed(f"{self.display_name} API error: {e.response.status_code} - {e.response.text[:300]}")
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            result = self._failed(f"{self.display_name} request failed: {e}")
        self._record("generate", result)
        return result

    async def check_status(self, request_id: str) -> ProviderResult:
        """Re-query an async job"""
        if not self.is_available():
            return self._failed(f"{self.display_name} API key not configured", request_id)
        try:
            result = await self._check_status(request_id)
        except httpx.HTTPStatusError as e:
            result = self._failed(f"{self.display_name} status error: {e.response.status_code}", request_id)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            result = self._failed(f"{self.display_name} status check failed: {e}", request_id)
        self._record("status", result)
        return result

    @abstractmethod
    async def _generate(self, options: Dict[str, Any]) -> ProviderResult:
        pass

    @abstractmethod
    async def _check_status(self, request_id: str) -> ProviderResult:
        pass

    def _failed(self, error: str, request_id: str = "") -> ProviderResult:
        return ProviderResult.failure(error, request_id=request_id, provider=self.name.value)

    def _record(self, operation: str, result: ProviderResult) -> None:
        provider_requests_counter.labels(provider=self.name.value, outcome=result.status.value).inc()
        if result.is_error:
            providers_logger.error(
                f"❌ {self.display_name} {operation} failed: {result.error}",
                extra={
                    "provider": self.name.value,
                    "operation": operation,
                    "request_id": result.request_id,
                }
            )
        else:
            providers_logger.info(
                f"{self.display_name} {operation}: {result.status.value} (request {result.request_id or '-'})"
            )

    def describe(self) -> Dict[str, Any]:
        """Provider listing entry"""
        return {
            "id": self.name.value,
            "name": self.display_name,
            "isAvailable": self.is_available(),
            "isTextToVideo": self.is_text_to_video,
            "isAvatar": self.is_avatar,
        }
