"""SkyReels avatar provider, served through apifree.ai"""
from typing import Any, Dict

from app.services.providers.base import BaseVideoProvider, ProviderName, ProviderResult

SKYREELS_API = "https://api.apifree.ai/v1"

SKYREELS_MODELS = {
    "SINGLE_AVATAR": "skywork-ai/skyreels-v3/standard/single-avatar",
    "TEXT_TO_VIDEO": "skywork-ai/skyreels-v3/standard/text-to-video",
}

DEFAULT_PROMPT = "The person speaks naturally to the camera. Use a static shot."


class SkyReelsProvider(BaseVideoProvider):
    name = ProviderName.SKYREELS
    display_name = "SkyReels"
    key_name = "skyreels"
    is_avatar = True

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    async def _get(self, path: str) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.get(f"{SKYREELS_API}{path}", headers=self._headers())
            return response.json()

    async def _generate(self, options: Dict[str, Any]) -> ProviderResult:
        audio_url = options.get("audioUrl")
        if not audio_url:
            return self._failed("SkyReels requires an audio URL")

        payload = {
            "model": options.get("model") or SKYREELS_MODELS["SINGLE_AVATAR"],
            "audios": [audio_url],
            "prompt": options.get("prompt") or DEFAULT_PROMPT,
        }
        if options.get("avatarImage"):
            payload["first_frame_image"] = options["avatarImage"]

        async with self._client() as client:
            response = await client.post(f"{SKYREELS_API}/video/submit", json=payload, headers=self._headers())
            data = response.json()

        if data.get("code") != 200:
            error = data.get("error") or {}
            if error.get("code") == "invalid_model" or "model schema not found" in (error.get("message") or ""):
                return self._failed("SkyReels avatar feature temporarily unavailable")
            return self._failed(data.get("code_msg") or "Failed to submit request")

        request_id = data["resp_data"]["request_id"]
        return ProviderResult.processing(request_id, provider=self.name.value, raw=data)

    async def _check_status(self, request_id: str) -> ProviderResult:
        data = await self._get(f"/video/{request_id}/status")
        if data.get("code") != 200:
            return self._failed(data.get("code_msg") or "Failed to check status", request_id)

        status = (data.get("resp_data") or {}).get("status")
        if status in ("error", "failed"):
            return self._failed(f"SkyReels generation {status}", request_id)
        if status not in ("success", "completed"):
            return ProviderResult.processing(request_id, provider=self.name.value)

        result = await self._get(f"/video/{request_id}/result")
        if result.get("code") != 200:
            return self._failed(result.get("code_msg") or "Failed to get result", request_id)

        video_list = (result.get("resp_data") or {}).get("video_list") or []
        if not video_list:
            # Finished but the result endpoint has not published the file yet
            return ProviderResult.processing(request_id, provider=self.name.value)
        return ProviderResult.success(request_id, video_list[0]["url"], provider=self.name.value)
