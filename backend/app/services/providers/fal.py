"""FAL AI text-to-video provider (LTX Video, Mochi)"""
import random
import time
from typing import Any, Dict

from app.services.providers.base import BaseVideoProvider, ProviderName, ProviderResult

FAL_API = "https://api.fal.ai/v1"

FAL_VIDEO_MODELS = {
    "DEFAULT": "fal-ai/ltx-video",
    "LTX_VIDEO": "fal-ai/ltx-video",
    "MOCHI": "fal-ai/mochi-v1",
}

DEFAULT_NEGATIVE_PROMPT = "worst quality, low quality, blurry, distorted, bad anatomy, bad proportions"


class FalVideoProvider(BaseVideoProvider):
    name = ProviderName.FAL
    display_name = "FAL AI"
    key_name = "fal"
    is_text_to_video = True

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def build_body(self, options: Dict[str, Any]) -> Dict[str, Any]:
        model = options.get("model") or FAL_VIDEO_MODELS["DEFAULT"]
        if model == FAL_VIDEO_MODELS["MOCHI"]:
            return {"prompt": options.get("prompt") or ""}

        duration = options.get("duration")
        return {
            "prompt": options.get("prompt") or "",
            "negative_prompt": options.get("negativePrompt") or DEFAULT_NEGATIVE_PROMPT,
            "num_frames": min(int(duration) * 24, 97) if duration else 49,
            "fps": options.get("fps") or 24,
            "width": options.get("width") or 768,
            "height": options.get("height") or 512,
            "seed": options.get("seed") or random.randint(0, 2147483646),
            "guidance_scale": 3.5,
            "motion_bucket_id": 127,
        }

    async def _generate(self, options: Dict[str, Any]) -> ProviderResult:
        model = options.get("model") or FAL_VIDEO_MODELS["DEFAULT"]

        async with self._client() as client:
            response = await client.post(f"{FAL_API}/{model}", json=self.build_body(options), headers=self._headers())
            response.raise_for_status()
            data = response.json()

        request_id = data.get("request_id") or f"fal_{int(time.time() * 1000)}"
        video_url = (data.get("output") or {}).get("video")
        if video_url:
            return ProviderResult.success(request_id, video_url, provider=self.name.value, raw=data)
        return ProviderResult.processing(request_id, provider=self.name.value, raw=data)

    async def _check_status(self, request_id: str) -> ProviderResult:
        async with self._client() as client:
            response = await client.get(f"{FAL_API}/requests/{request_id}", headers=self._headers())
            response.raise_for_status()
            data = response.json()

        status = data.get("status")
        if status == "completed":
            video_url = (data.get("output") or {}).get("video")
            return ProviderResult.success(request_id, video_url, provider=self.name.value)
        if status == "failed":
            return self._failed(data.get("error") or "FAL generation failed", request_id)
        return ProviderResult.processing(request_id, provider=self.name.value, raw={"progress": data.get("progress")})
