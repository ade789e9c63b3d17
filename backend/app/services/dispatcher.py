"""Preferred-then-priority fallback across interchangeable content providers"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from app.core.metrics import dispatcher_fallbacks_counter

providers_logger = logging.getLogger("providers")


def is_failure(result: Any) -> bool:
    """None, an error ProviderResult or a {"status": "error"} dict all count as failures"""
    if result is None:
        return True
    if getattr(result, "is_error", False):
        return True
    if isinstance(result, dict) and result.get("status") == "error":
        return True
    return False


class FallbackDispatcher:
    """Tries the preferred adapter, then the rest in priority order, then a placeholder.

    Adapters expose ``name``, ``is_available()`` and ``async generate(payload)``.
    ``dispatch`` never raises: adapter exceptions are collected as errors and
    handed to the placeholder factory with the payload.
    """

    def __init__(
        self,
        service: str,
        adapters: Mapping[str, Any],
        priority: List[str],
        placeholder: Callable[[Dict[str, Any], Dict[str, str]], Any],
    ):
        self.service = service
        self.adapters = dict(adapters)
        self.priority = [name for name in priority if name in self.adapters]
        self.placeholder = placeholder

    def available(self) -> List[str]:
        return [name for name in self.priority if self.adapters[name].is_available()]

    async def _attempt(self, name: str, payload: Dict[str, Any], errors: Dict[str, str]) -> Optional[Any]:
        adapter = self.adapters[name]
        try:
            result = await adapter.generate(payload)
        except Exception as e:
            errors[name] = str(e) or type(e).__name__
            providers_logger.warning(f"❌ {self.service} provider {name} raised: {errors[name]}",
                                     extra={"service": self.service, "provider": name})
            return None

        if is_failure(result):
            errors[name] = getattr(result, "error", None) or "no result"
            providers_logger.warning(f"{self.service} provider {name} returned no usable result")
            return None
        return result

    async def dispatch(self, preferred: Optional[str], payload: Dict[str, Any]) -> Any:
        errors: Dict[str, str] = {}
        tried = set()

        if preferred and preferred in self.adapters and self.adapters[preferred].is_available():
            tried.add(preferred)
            result = await self._attempt(preferred, payload, errors)
            if result is not None:
                return result

        for name in self.priority:
            if name in tried or not self.adapters[name].is_available():
                continue
            tried.add(name)
            result = await self._attempt(name, payload, errors)
            if result is not None:
                dispatcher_fallbacks_counter.labels(service=self.service, target=name).inc()
                providers_logger.info(f"{self.service}: fell back to {name}")
                return result

        dispatcher_fallbacks_counter.labels(service=self.service, target="placeholder").inc()
        providers_logger.warning(f"{self.service}: all providers failed, using placeholder",
                                 extra={"service": self.service, "errors": errors})
        return self.placeholder(payload, errors)
