"""Scene image generation across stock and AI image providers"""
import asyncio
import base64
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from app.core.config import IMAGES_DIR, settings, is_key_configured
from app.services.dispatcher import FallbackDispatcher
from app.services.providers.base import ProviderStatus
from app.services.providers.downloads import download_media, media_filename
from app.services.script_service import ChatCompletionProvider, build_chat_providers

images_logger = logging.getLogger("images")

IMAGE_STYLES = ("cinematic", "animated", "minimalist", "documentary", "stock")

# Stock photos first, least reliable last
IMAGE_PROVIDER_ORDER = ["pexels", "bytez", "craiyon", "deepai", "pollinations", "leonardo", "huggingface", "replicate"]

DIMENSIONS = {
    "9:16": (1080, 1920),
    "16:9": (1920, 1080),
    "1:1": (1080, 1080),
}

BYTEZ_DIMENSIONS = {
    "9:16": (1024, 1024),
    "16:9": (1024, 576),
    "1:1": (1024, 1024),
}

STYLE_GRADIENTS = {
    "cinematic": ("#0f0c29", "#302b63"),
    "animated": ("#FF6B6B", "#4ECDC4"),
    "minimalist": ("#F5F5F5", "#CCCCCC"),
    "documentary": ("#2C3E50", "#34495E"),
    "stock": ("#667EEA", "#764BA2"),
}


def dimensions_for(aspect_ratio: Optional[str], table: Dict[str, tuple] = DIMENSIONS) -> tuple:
    return table.get(aspect_ratio or "9:16", table["9:16"])


def public_image_url(filename: str) -> str:
    return f"{settings.BACKEND_URL}/images/{filename}"


class ImageProvider:
    """Base for image providers. generate() returns an image dict, or None on failure."""

    name = ""
    key_name = ""

    def __init__(self, api_key: Optional[str] = None, images_dir: Path = IMAGES_DIR,
                 transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 120.0):
        self.api_key = (api_key or "").strip()
        self.images_dir = Path(images_dir)
        self._transport = transport
        self.timeout = timeout

    def is_available(self) -> bool:
        return is_key_configured(self.api_key, self.key_name or self.name)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport, follow_redirects=True)

    async def _save(self, url: str, payload: Dict[str, Any], headers: Optional[dict] = None) -> Optional[Dict[str, Any]]:
        filename = media_filename("image", "jpg")
        saved = await download_media(url, self.images_dir, filename, transport=self._transport, headers=headers)
        if saved is None:
            return None
        return self._result(saved, payload)

    def _result(self, saved: Path, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "imageUrl": public_image_url(saved.name),
            "localPath": str(saved),
            "prompt": payload.get("prompt"),
            "style": payload.get("style") or "cinematic",
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "provider": self.name,
        }

    async def generate(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError


class PexelsImageProvider(ImageProvider):
    name = "pexels"

    async def generate(self, payload):
        width, height = dimensions_for(payload.get("aspectRatio"))
        params = {
            "query": payload["prompt"],
            "per_page": 5,
            "orientation": "landscape" if width > height else "portrait",
            "size": "large" if width >= 1920 else "medium" if width >= 1280 else "small",
        }
        async with self._client() as client:
            response = await client.get("https://api.pexels.com/v1/search", params=params,
                                        headers={"Authorization": self.api_key})
            response.raise_for_status()
            photos = response.json().get("photos") or []

        if not photos:
            images_logger.info(f"Pexels has no photos for '{payload['prompt'][:40]}'")
            return None
        src = photos[0].get("src") or {}
        result = await self._save(src.get("original") or src.get("large"), payload)
        if result:
            result["style"] = payload.get("style") or "stock"
        return result


class BytezImageProvider(ImageProvider):
    name = "bytez"
    model = "stabilityai/stable-diffusion-xl-base-1.0"

    async def generate(self, payload):
        width, height = dimensions_for(payload.get("aspectRatio"), BYTEZ_DIMENSIONS)
        async with self._client() as client:
            response = await client.post(
                f"https://api.bytez.com/models/v2/{self.model}",
                json={"text": payload["prompt"], "width": width, "height": height, "num_images": 1},
                headers={"Authorization": self.api_key, "Content-Type": "application/json"},
            )
            response.raise_for_status()
            output = response.json().get("output")

        if isinstance(output, str):
            url = output
        elif isinstance(output, dict):
            url = (output.get("images") or [None])[0] or output.get("url")
        else:
            url = None
        return await self._save(url, payload) if url else None


class PollinationsImageProvider(ImageProvider):
    name = "pollinations"

    def is_available(self) -> bool:
        return True

    def build_url(self, payload: Dict[str, Any]) -> str:
        width, height = dimensions_for(payload.get("aspectRatio"))
        return (
            f"https://gen.pollinations.ai/image/{quote(payload['prompt'], safe='')}"
            f"?width={width}&height={height}&nologo=true&seed={int(time.time() * 1000)}"
            f"&model={payload.get('model') or 'flux'}"
        )

    async def generate(self, payload):
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None
        return await self._save(self.build_url(payload), payload, headers=headers)


class CraiyonImageProvider(ImageProvider):
    """Free Craiyon v3 endpoint. Returns base64 images and allows one request per interval."""

    name = "craiyon"
    min_interval = 10.0

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._last_request = 0.0

    def is_available(self) -> bool:
        return time.monotonic() - self._last_request >= self.min_interval or self._last_request == 0.0

    async def generate(self, payload):
        self._last_request = time.monotonic()
        model = "optimized" if payload.get("model") == "optimized" else "gallery"
        async with self._client() as client:
            response = await client.post(
                "https://api.craiyon.com/v3",
                json={"prompt": payload["prompt"], "model": model, "width": 512, "height": 512},
            )
            response.raise_for_status()
            images = response.json().get("images") or []

        if not images:
            return None
        encoded = images[0].split(",", 1)[1] if images[0].startswith("data:") else images[0]
        self.images_dir.mkdir(parents=True, exist_ok=True)
        saved = self.images_dir / media_filename("image", "jpg")
        saved.write_bytes(base64.b64decode(encoded))
        return self._result(saved, payload)


class DeepAIImageProvider(ImageProvider):
    """DeepAI stable-diffusion. Works without a key at a lower rate limit."""

    name = "deepai"

    def is_available(self) -> bool:
        return True

    async def generate(self, payload):
        headers = {"api-key": self.api_key} if self.api_key else {}
        async with self._client() as client:
            response = await client.post(
                "https://api.deepai.org/api/stable-diffusion",
                data={"text": payload["prompt"]},
                headers=headers,
            )
            response.raise_for_status()
            url = response.json().get("output_url")
        return await self._save(url, payload) if url else None


LEONARDO_DIMENSIONS = {
    "9:16": (576, 1024),
    "16:9": (1024, 576),
    "1:1": (1024, 1024),
}


def leonardo_status(generation: Optional[Dict[str, Any]]) -> ProviderStatus:
    status = (generation or {}).get("status")
    if status == "COMPLETE":
        return ProviderStatus.SUCCESS
    if status == "FAILED":
        return ProviderStatus.ERROR
    return ProviderStatus.PROCESSING


class LeonardoImageProvider(ImageProvider):
    name = "leonardo"
    model_id = "6bef9f1b-29cb-40c7-b9de-3e6a41e5c68f"
    base_url = "https://api.leonardo.ai/v1"
    poll_interval = 2.0
    max_polls = 90

    async def generate(self, payload):
        width, height = dimensions_for(payload.get("aspectRatio"), LEONARDO_DIMENSIONS)
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/generations",
                json={
                    "prompt": payload["prompt"],
                    "width": width,
                    "height": height,
                    "num_images": 1,
                    "model_id": payload.get("model") or self.model_id,
                },
                headers=headers,
            )
            response.raise_for_status()
            data = response.json()
            generation_id = data.get("generation_id") or (data.get("sdGenerationJob") or {}).get("generationId")
            if not generation_id:
                images_logger.warning("Leonardo did not return a generation id")
                return None

            for _ in range(self.max_polls):
                await asyncio.sleep(self.poll_interval)
                poll = await client.get(f"{self.base_url}/generations/{generation_id}", headers=headers)
                if poll.status_code != 200:
                    continue
                generation = (poll.json().get("generations") or [None])[0]
                status = leonardo_status(generation)
                if status == ProviderStatus.SUCCESS and generation.get("url"):
                    return await self._save(generation["url"], payload)
                if status == ProviderStatus.ERROR:
                    images_logger.warning(f"Leonardo generation {generation_id} failed")
                    return None
        images_logger.warning("Leonardo generation timed out")
        return None


class HuggingFaceImageProvider(ImageProvider):
    name = "huggingface"
    models = ["stabilityai/stable-diffusion-2-1", "segmind/SSD-1B"]

    async def generate(self, payload):
        async with self._client() as client:
            for model in self.models:
                response = await client.post(
                    f"https://api-inference.huggingface.co/models/{model}",
                    json={"inputs": payload["prompt"]},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                if response.status_code != 200:
                    images_logger.warning(f"HuggingFace {model} returned {response.status_code}")
                    continue

                self.images_dir.mkdir(parents=True, exist_ok=True)
                saved = self.images_dir / media_filename("image", "jpg")
                saved.write_bytes(response.content)
                return self._result(saved, payload)
        return None


class ReplicateImageProvider(ImageProvider):
    name = "replicate"
    model = "black-forest-labs/flux-schnell"
    poll_interval = 2.0
    max_polls = 60

    async def generate(self, payload):
        width, height = dimensions_for(payload.get("aspectRatio"))
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        async with self._client() as client:
            response = await client.post(
                f"https://api.replicate.com/v1/models/{self.model}/predictions",
                json={"input": {"prompt": payload["prompt"], "width": width, "height": height, "num_outputs": 1}},
                headers=headers,
            )
            response.raise_for_status()
            prediction = response.json()

            for _ in range(self.max_polls):
                status = prediction.get("status")
                if status == "succeeded":
                    output = prediction.get("output") or []
                    url = output[0] if isinstance(output, list) and output else output
                    return await self._save(url, payload) if url else None
                if status in ("failed", "canceled"):
                    return None
                await asyncio.sleep(self.poll_interval)
                poll = await client.get(f"https://api.replicate.com/v1/predictions/{prediction['id']}",
                                        headers=headers)
                poll.raise_for_status()
                prediction = poll.json()
        images_logger.warning("Replicate image prediction timed out")
        return None


class PromptEnhancer:
    """Rewrites an image prompt into a more descriptive one with the first chat provider that answers"""

    def __init__(self, providers: Dict[str, ChatCompletionProvider]):
        self.providers = providers

    async def enhance(self, prompt: str, style: str = "cinematic") -> Optional[str]:
        message = (
            f'Enhance this image generation prompt: "{prompt}". '
            "Make it more detailed and descriptive for an AI image generator. "
            f"Style: {style}. Return ONLY the enhanced prompt, nothing else."
        )
        for name, provider in self.providers.items():
            if not provider.is_available():
                continue
            try:
                enhanced = await provider.complete([{"role": "user", "content": message}],
                                                   temperature=0.7, max_tokens=200)
            except (httpx.HTTPError, ValueError) as e:
                images_logger.warning(f"Prompt enhancement via {name} failed: {e}")
                continue
            enhanced = enhanced.strip().strip('"')
            if enhanced:
                return enhanced
        return None


class ImageService:
    def __init__(self, providers: Dict[str, ImageProvider], default_provider: str = "pollinations",
                 images_dir: Path = IMAGES_DIR, enhancer: Optional[PromptEnhancer] = None):
        self.providers = providers
        self.default_provider = default_provider
        self.images_dir = Path(images_dir)
        self.enhancer = enhancer
        self.dispatcher = FallbackDispatcher("image", providers, IMAGE_PROVIDER_ORDER,
                                             lambda payload, errors: self.generate_mock_image(payload))

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ImageService":
        providers = {
            "pexels": PexelsImageProvider(settings.PEXELS_API_KEY, transport=transport),
            "bytez": BytezImageProvider(settings.BYTEZ_API_KEY, transport=transport),
            "craiyon": CraiyonImageProvider(transport=transport),
            "deepai": DeepAIImageProvider(settings.DEEPAI_API_KEY, transport=transport),
            "pollinations": PollinationsImageProvider(settings.POLLINATIONS_API_KEY, transport=transport),
            "leonardo": LeonardoImageProvider(settings.LEONARDO_API_KEY, transport=transport),
            "huggingface": HuggingFaceImageProvider(settings.HUGGINGFACE_API_KEY, transport=transport),
            "replicate": ReplicateImageProvider(settings.REPLICATE_API_KEY, transport=transport),
        }
        return cls(providers, settings.IMAGE_PROVIDER, enhancer=PromptEnhancer(build_chat_providers(transport)))

    def get_available_providers(self) -> List[Dict[str, Any]]:
        return [{"name": name, "available": p.is_available()} for name, p in self.providers.items()]

    async def generate_image(self, prompt: str, style: str = "cinematic", aspect_ratio: str = "9:16",
                             provider: Optional[str] = None) -> Dict[str, Any]:
        """Always returns an image; a gradient SVG when every provider fails"""
        payload = {"prompt": prompt, "style": style, "aspectRatio": aspect_ratio}
        if self.enhancer is not None:
            enhanced = await self.enhancer.enhance(prompt, style)
            if enhanced:
                payload["prompt"] = enhanced
                payload["originalPrompt"] = prompt
        return await self.dispatcher.dispatch(provider or self.default_provider, payload)

    def generate_mock_image(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        style = payload.get("style") or "cinematic"
        start, end = STYLE_GRADIENTS.get(style, STYLE_GRADIENTS["cinematic"])
        label = (payload.get("prompt") or "")[:30].replace("&", "&amp;").replace("<", "&lt;")
        svg = f"""<svg width="1080" height="1920" xmlns="http://www.w3.org/2000/svg">
  <defs>
    <linearGradient id="grad" x1="0%" y1="0%" x2="100%" y2="100%">
      <stop offset="0%" style="stop-color:{start};stop-opacity:1" />
      <stop offset="100%" style="stop-color:{end};stop-opacity:1" />
    </linearGradient>
  </defs>
  <rect width="1080" height="1920" fill="url(#grad)"/>
  <text x="540" y="960" font-size="48" fill="white" text-anchor="middle" font-family="Arial">{label}</text>
  <text x="540" y="1020" font-size="24" fill="white" opacity="0.7" text-anchor="middle" font-family="Arial">{style} • Mock Generated</text>
</svg>
"""
        self.images_dir.mkdir(parents=True, exist_ok=True)
        filename = media_filename("image_mock", "svg")
        path = self.images_dir / filename
        path.write_text(svg, encoding="utf-8")
        images_logger.info(f"Mock image created: {filename}")

        return {
            "imageUrl": public_image_url(filename),
            "localPath": str(path),
            "prompt": payload.get("prompt"),
            "style": style,
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "provider": "mock",
        }

    def cleanup_old_images(self, max_age_days: int = 7) -> int:
        """Delete generated images older than max_age_days. Returns the number removed."""
        if not self.images_dir.exists():
            return 0
        cutoff = time.time() - max_age_days * 24 * 60 * 60
        deleted = 0
        for path in self.images_dir.glob("image_*"):
            if path.suffix not in (".svg", ".jpg", ".png"):
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    deleted += 1
            except OSError as e:
                images_logger.warning(f"Could not remove {path.name}: {e}")
        if deleted:
            images_logger.info(f"🗑️ Cleaned up {deleted} old images")
        return deleted
