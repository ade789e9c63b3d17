"""Scene-based script generation with provider fallback"""
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings, is_key_configured
from app.services.dispatcher import FallbackDispatcher

scripts_logger = logging.getLogger("scripts")

SYSTEM_PROMPT = "You are a creative video script writer. Always respond with valid JSON only."

SCRIPT_PROVIDER_ORDER = ["groq", "openrouter", "together"]

MOCK_SCRIPTS: Dict[str, Dict[str, Any]] = {
    "technology": {
        "title": "Top 5 AI Breakthroughs You Need to Know",
        "caption": "Discover the latest AI innovations transforming our world.",
        "hashtags": ["AI", "Technology", "Innovation", "FutureOfAI", "TechTrends"],
        "scenes": [
            {
                "id": "1",
                "duration": 10,
                "narration": "AI is advancing at lightning speed!",
                "textOverlay": "AI Breakthroughs 2025",
                "background": {"type": "gradient", "source": "linear-gradient(135deg, #0010FF 0%, #7C3AED 100%)"},
            },
        ],
    },
    "fitness": {
        "title": "7-Minute Full Body Workout at Home",
        "caption": "No gym? No problem! Transform your body with this quick workout.",
        "hashtags": ["Fitness", "Workout", "HealthyLifestyle", "HomeWorkout"],
        "scenes": [
            {
                "id": "1",
                "duration": 8,
                "narration": "Ready for a quick full-body workout?",
                "textOverlay": "7-Minute Full Body",
                "background": {"type": "gradient", "source": "linear-gradient(135deg, #10B981 0%, #059669 100%)"},
            },
        ],
    },
}

MOCK_GRADIENTS = [
    "linear-gradient(135deg, #667eea 0%, #764ba2 100%)",
    "linear-gradient(135deg, #f093fb 0%, #f5576c 100%)",
    "linear-gradient(135deg, #4facfe 0%, #00f2fe 100%)",
]


def parse_json_content(content: str) -> Any:
    """Parse model output, tolerating a ```json fenced block"""
    text = (content or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    return json.loads(text)


class ChatCompletionProvider:
    """OpenAI-compatible chat completions endpoint (Groq, OpenRouter, Together)"""

    def __init__(self, name: str, base_url: str, model: str, api_key: Optional[str],
                 json_mode: bool = False, extra_headers: Optional[Dict[str, str]] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 60.0):
        self.name = name
        self.base_url = base_url
        self.model = model
        self.api_key = (api_key or "").strip()
        self.json_mode = json_mode
        self.extra_headers = extra_headers or {}
        self._transport = transport
        self.timeout = timeout

    def is_available(self) -> bool:
        return is_key_configured(self.api_key, self.name)

    async def complete(self, messages: List[Dict[str, str]], model: Optional[str] = None,
                       temperature: float = 0.7, max_tokens: int = 2048) -> str:
        body = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if self.json_mode:
            body["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            **self.extra_headers,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(f"{self.base_url}/chat/completions", json=body, headers=headers)
            response.raise_for_status()
            data = response.json()

        content = (data.get("choices") or [{}])[0].get("message", {}).get("content")
        if not content:
            raise ValueError(f"{self.name} returned an empty completion")
        return content

    async def generate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        duration = payload.get("duration", 30)
        if payload.get("prompt"):
            subject = (
                f"Turn this idea into an engaging {duration}-second video script in a {payload.get('style') or 'modern'} "
                f"style, narrated in {payload.get('language') or 'en-US'}: {payload['prompt']}"
            )
        else:
            subject = f"Generate an engaging {duration}-second video script about {payload['niche']}."
        prompt = (
            f"{subject} "
            "Return a JSON object with title, caption, hashtags (array of strings) and a scenes array. "
            "Each scene has id, duration, narration, textOverlay and background {type, source}."
        )
        content = await self.complete(
            [{"role": "system", "content": SYSTEM_PROMPT}, {"role": "user", "content": prompt}],
            model=payload.get("model") if payload.get("preferred") == self.name else None,
        )
        script = parse_json_content(content)
        if not isinstance(script, dict) or not script.get("scenes"):
            raise ValueError(f"{self.name} returned a script without scenes")
        script["provider"] = self.name
        return script


def build_chat_providers(transport: Optional[httpx.AsyncBaseTransport] = None,
                         groq_json: bool = False) -> Dict[str, ChatCompletionProvider]:
    """Groq, OpenRouter and Together clients keyed from settings, in fallback order"""
    return {
        "groq": ChatCompletionProvider(
            "groq", "https://api.groq.com/openai/v1", "llama-3.1-8b-instant",
            settings.GROQ_API_KEY, json_mode=groq_json, transport=transport,
        ),
        "openrouter": ChatCompletionProvider(
            "openrouter", "https://openrouter.ai/api/v1", "anthropic/claude-3-haiku",
            settings.OPENROUTER_API_KEY,
            extra_headers={"HTTP-Referer": settings.BACKEND_URL, "X-Title": "Shortform Studio"},
            transport=transport,
        ),
        "together": ChatCompletionProvider(
            "together", "https://api.together.ai/v1", "meta-llama/Llama-3.3-70B-Instruct-Turbo",
            settings.TOGETHER_API_KEY, transport=transport,
        ),
    }


def mock_script(niche: str) -> Dict[str, Any]:
    """Deterministic script used when no provider is reachable"""
    preset = MOCK_SCRIPTS.get(niche.lower())
    if preset:
        return {**preset, "provider": "mock"}

    compact = niche.replace(" ", "")
    return {
        "title": f"Amazing {niche} Facts You Never Knew",
        "caption": f"Discover fascinating insights about {niche}.",
        "hashtags": [compact, "Facts", "Learning", "Trending"],
        "scenes": [
            {
                "id": "1",
                "duration": 10,
                "narration": f"Get ready to learn about {niche}!",
                "textOverlay": f"{niche} Explained",
                "background": {"type": "gradient", "source": MOCK_GRADIENTS[0]},
            },
            {
                "id": "2",
                "duration": 10,
                "narration": f"Here is what most people never realize about {niche}.",
                "textOverlay": "Did you know?",
                "background": {"type": "gradient", "source": MOCK_GRADIENTS[1]},
            },
            {
                "id": "3",
                "duration": 10,
                "narration": "Follow for more facts like this!",
                "textOverlay": "Follow for more",
                "background": {"type": "gradient", "source": MOCK_GRADIENTS[2]},
            },
        ],
        "provider": "mock",
    }


class ScriptService:
    def __init__(self, providers: Dict[str, ChatCompletionProvider], default_provider: str = "groq"):
        self.providers = providers
        self.default_provider = default_provider
        self.dispatcher = FallbackDispatcher(
            "script",
            providers,
            SCRIPT_PROVIDER_ORDER,
            lambda payload, errors: mock_script(payload["niche"]),
        )

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ScriptService":
        return cls(build_chat_providers(transport, groq_json=True), settings.SCRIPT_PROVIDER)

    def get_available_providers(self) -> List[Dict[str, Any]]:
        return [{"name": name, "available": p.is_available()} for name, p in self.providers.items()]

    async def generate_script(self, niche: str, duration: int = 30, provider: Optional[str] = None,
                              model: Optional[str] = None) -> Dict[str, Any]:
        """Generate a scene script. Always returns a script; the mock one when every provider fails."""
        script = await self.dispatcher.dispatch(
            provider or self.default_provider,
            {"niche": niche, "duration": duration, "model": model, "preferred": provider or self.default_provider},
        )
        scripts_logger.info(f"Script for '{niche}' generated by {script.get('provider')}")
        return script

    async def generate_from_prompt(self, prompt: str, duration: int = 30, style: str = "modern",
                                   language: str = "en-US") -> Dict[str, Any]:
        """Scene script for a free-form idea instead of a niche"""
        payload = {
            "niche": prompt[:40],
            "prompt": prompt,
            "duration": duration,
            "style": style,
            "language": language,
            "preferred": self.default_provider,
        }
        script = await self.dispatcher.dispatch(self.default_provider, payload)
        scripts_logger.info(f"Prompt script generated by {script.get('provider')}")
        return script
