"""HeyGen avatar video provider"""
from typing import Any, Dict

from app.services.providers.base import BaseVideoProvider, ProviderName, ProviderResult

HEYGEN_API = "https://api.heygen.com"

# Ivy
DEFAULT_VOICE_ID = "cef3bc4e0a84424cafcde6f2cf466c97"


class HeyGenProvider(BaseVideoProvider):
    name = ProviderName.HEYGEN
    display_name = "HeyGen"
    key_name = "heygen"
    is_avatar = True

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def build_payload(self, options: Dict[str, Any]) -> Dict[str, Any]:
        audio_url = options.get("audioUrl")
        text = options.get("text") or options.get("prompt")
        avatar_image = options.get("avatarImage")

        if options.get("avatarId") or not avatar_image:
            character = {
                "type": "avatar",
                "avatar_id": options.get("avatarId") or "default-avatar",
                "avatar_style": "normal",
            }
        else:
            character = {"type": "talking_photo", "talking_photo_url": avatar_image}

        if audio_url:
            voice = {"type": "audio", "audio_url": audio_url}
        else:
            voice = {"type": "text", "input_text": text or "", "voice_id": DEFAULT_VOICE_ID}

        return {
            "video_inputs": [{"character": character, "voice": voice}],
            "quality": "standard",
            "dimension": {"width": 1280, "height": 720},
        }

    async def _generate(self, options: Dict[str, Any]) -> ProviderResult:
        async with self._client() as client:
            response = await client.post(
                f"{HEYGEN_API}/v2/video/generate", json=self.build_payload(options), headers=self._headers()
            )
            data = response.json()

        if data.get("error"):
            error = data["error"]
            return self._failed(error.get("message") if isinstance(error, dict) else str(error))
        response.raise_for_status()

        video_id = (data.get("data") or {}).get("video_id")
        if not video_id:
            return self._failed("Failed to get video ID from HeyGen")
        return ProviderResult.processing(video_id, provider=self.name.value, raw=data)

    async def _check_status(self, request_id: str) -> ProviderResult:
        async with self._client() as client:
            response = await client.get(
                f"{HEYGEN_API}/v1/video_status.get", params={"video_id": request_id}, headers=self._headers()
            )
            response.raise_for_status()
            data = response.json().get("data") or {}

        status = data.get("status")
        if status == "completed":
            return ProviderResult.success(request_id, data.get("video_url"), provider=self.name.value)
        if status == "failed":
            error = data.get("error")
            if isinstance(error, dict):
                error = error.get("message")
            return self._failed(error or "HeyGen generation failed", request_id)
        return ProviderResult.processing(request_id, provider=self.name.value)
