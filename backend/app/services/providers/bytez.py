"""Bytez text-to-video provider"""
import time
from typing import Any, Dict, Optional

from app.services.providers.base import BaseVideoProvider, ProviderName, ProviderResult

BYTEZ_API = "https://api.bytez.com/models/v2"

BYTEZ_VIDEO_MODELS = {
    "DEFAULT": "ali-vilab/text-to-video-ms-1.7b",
    "ZEROSCOPE": "cerspense/zeroscope_v2_576w",
    "WAN": "wan/v2.6/text-to-video",
}


def _output_url(output: Any) -> Optional[str]:
    """Bytez returns either a bare URL or a dict with video_url / video"""
    if isinstance(output, str) and output.startswith("http"):
        return output
    if isinstance(output, dict):
        return output.get("video_url") or output.get("video")
    return None


class BytezVideoProvider(BaseVideoProvider):
    name = ProviderName.BYTEZ
    display_name = "Bytez"
    key_name = "bytez"
    is_text_to_video = True

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": self.api_key, "Content-Type": "application/json"}

    async def _generate(self, options: Dict[str, Any]) -> ProviderResult:
        model = options.get("model") or BYTEZ_VIDEO_MODELS["DEFAULT"]
        prompt = options.get("prompt") or ""

        if "zeroscope" in model:
            body = {"text": prompt, "num_frames": 24, "fps": 8}
        else:
            body = {
                "text": prompt,
                "width": options.get("width") or 576,
                "height": options.get("height") or 320,
            }

        async with self._client() as client:
            response = await client.post(f"{BYTEZ_API}/{model}", json=body, headers=self._headers())
            response.raise_for_status()
            data = response.json()

        request_id = data.get("id") or f"bytez_{int(time.time() * 1000)}"
        if data.get("error") and not data.get("output"):
            return self._failed(f"Bytez error: {data['error']}", request_id)

        video_url = _output_url(data.get("output"))
        if video_url:
            return ProviderResult.success(request_id, video_url, provider=self.name.value, raw=data)
        return ProviderResult.processing(request_id, provider=self.name.value, raw=data)

    async def _check_status(self, request_id: str) -> ProviderResult:
        async with self._client() as client:
            response = await client.get(f"{BYTEZ_API}/requests/{request_id}", headers=self._headers())
            response.raise_for_status()
            data = response.json()

        status = data.get("status")
        if status == "succeeded":
            return ProviderResult.success(request_id, _output_url(data.get("output")), provider=self.name.value)
        if status == "failed":
            return self._failed(data.get("error") or "Bytez generation failed", request_id)
        return ProviderResult.processing(request_id, provider=self.name.value)
