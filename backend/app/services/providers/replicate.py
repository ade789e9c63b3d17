"""Replicate text-to-video provider (CogVideo)"""
import time
from typing import Any, Dict, Optional

from app.services.providers.base import BaseVideoProvider, ProviderName, ProviderResult

REPLICATE_API = "https://api.replicate.com/v1"

REPLICATE_VIDEO_MODELS = {
    "COGVIDEO": "THUDM/CogVideo",
    "COGVIDEO_VERSION": "9c3ed42c1c8252e2355895a9c2f6078bfcf4f7963e42a3b5c5a28e7a3e7c7c7c",
}

PROCESSING_STATES = ("starting", "processing")
FAILED_STATES = ("failed", "canceled")


def _output_url(output: Any) -> Optional[str]:
    if isinstance(output, str):
        return output
    if isinstance(output, list) and output:
        return output[0]
    if isinstance(output, dict):
        return output.get("video")
    return None


class ReplicateVideoProvider(BaseVideoProvider):
    name = ProviderName.REPLICATE
    display_name = "Replicate"
    key_name = "replicate"
    is_text_to_video = True

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def _map(self, data: Dict[str, Any], request_id: str) -> ProviderResult:
        status = data.get("status")
        if status == "succeeded":
            return ProviderResult.success(request_id, _output_url(data.get("output")), provider=self.name.value)
        if status in FAILED_STATES:
            return self._failed(data.get("error") or "Video generation failed", request_id)
        return ProviderResult.processing(request_id, provider=self.name.value)

    async def _generate(self, options: Dict[str, Any]) -> ProviderResult:
        model = options.get("model") or REPLICATE_VIDEO_MODELS["COGVIDEO"]
        version = REPLICATE_VIDEO_MODELS["COGVIDEO_VERSION"]
        duration = options.get("duration")

        body = {
            "input": {
                "prompt": options.get("prompt") or "",
                "num_frames": int(duration) * 8 if duration else 32,
                "fps": 8,
                "width": options.get("width") or 480,
                "height": options.get("height") or 272,
            }
        }

        async with self._client() as client:
            response = await client.post(
                f"{REPLICATE_API}/models/{model}/versions/{version}/predictions",
                json=body,
                headers={**self._headers(), "Prefer": "wait"},
            )
            response.raise_for_status()
            data = response.json()

        request_id = data.get("id") or f"replicate_{int(time.time() * 1000)}"
        return self._map(data, request_id)

    async def _check_status(self, request_id: str) -> ProviderResult:
        async with self._client() as client:
            response = await client.get(f"{REPLICATE_API}/predictions/{request_id}", headers=self._headers())
            response.raise_for_status()
            data = response.json()
        return self._map(data, request_id)
