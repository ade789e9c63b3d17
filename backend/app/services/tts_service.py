"""Text-to-speech narration (Murf AI, Microsoft Edge TTS)"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import edge_tts
import httpx

from app.core.config import RENDERS_DIR, settings, is_key_configured
from app.services.dispatcher import FallbackDispatcher
from app.services.providers.downloads import download_media, media_filename

tts_logger = logging.getLogger("tts")

TTS_PROVIDER_ORDER = ["murf", "edge-tts"]

# Rough MP3 speech bitrate used for duration estimates
BYTES_PER_SECOND = 16000

EDGE_VOICES = {
    "en-US": ("en-US-GuyNeural", "en-US-JennyNeural"),
    "en-GB": ("en-GB-RyanNeural", "en-GB-SoniaNeural"),
    "es-ES": ("es-ES-AlvaroNeural", "es-ES-ElviraNeural"),
    "fr-FR": ("fr-FR-HenriNeural", "fr-FR-DeniseNeural"),
    "de-DE": ("de-DE-ConradNeural", "de-DE-KatjaNeural"),
    "hi-IN": ("hi-IN-MadhurNeural", "hi-IN-SwaraNeural"),
    "pt-BR": ("pt-BR-AntonioNeural", "pt-BR-FranciscaNeural"),
    "it-IT": ("it-IT-DiegoNeural", "it-IT-ElsaNeural"),
    "ja-JP": ("ja-JP-KeitaNeural", "ja-JP-NanamiNeural"),
    "ko-KR": ("ko-KR-InJoonNeural", "ko-KR-SunHiNeural"),
    "zh-CN": ("zh-CN-YunjianNeural", "zh-CN-XiaoxiaoNeural"),
    "ru-RU": ("ru-RU-DmitryNeural", "ru-RU-SvetlanaNeural"),
}
DEFAULT_EDGE_VOICE = "en-US-JennyNeural"

MURF_LANGUAGES = ("en-US", "en-GB", "es-ES", "fr-FR", "de-DE", "pt-BR", "ja-JP")


def edge_voice_for(language_code: Optional[str], gender: Optional[str]) -> str:
    voices = EDGE_VOICES.get(language_code or "en-US")
    if not voices:
        return DEFAULT_EDGE_VOICE
    male, female = voices
    return male if (gender or "").upper() == "MALE" else female


def murf_voice_for(language_code: Optional[str], gender: Optional[str]) -> str:
    language = language_code if language_code in MURF_LANGUAGES else "en-US"
    suffix = "male" if (gender or "").upper() == "MALE" else "female"
    return f"{language}-{suffix}-1"


def estimate_duration_ms(size_bytes: int) -> int:
    return round(size_bytes / BYTES_PER_SECOND * 1000)


def mock_audio(payload: Dict[str, Any], errors: Dict[str, str]) -> Dict[str, Any]:
    return {"audioUrl": "", "duration": 0, "isMock": True, "provider": "mock"}


class TTSProvider:
    name = ""

    def __init__(self, renders_dir: Path = RENDERS_DIR):
        self.renders_dir = Path(renders_dir)

    def _result(self, path: Path) -> Dict[str, Any]:
        return {
            "audioUrl": f"{settings.BACKEND_URL}/renders/{path.name}",
            "localPath": str(path),
            "duration": estimate_duration_ms(path.stat().st_size),
            "isMock": False,
            "provider": self.name,
        }


class MurfTTSProvider(TTSProvider):
    name = "murf"

    def __init__(self, api_key: Optional[str], renders_dir: Path = RENDERS_DIR,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(renders_dir)
        self.api_key = (api_key or "").strip()
        self._transport = transport

    def is_available(self) -> bool:
        return is_key_configured(self.api_key, "murf")

    async def generate(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        body = {
            "text": payload["text"],
            "voiceId": murf_voice_for(payload.get("languageCode"), payload.get("gender")),
            "format": "MP3",
            "speed": payload.get("speakingRate") or 1.0,
            "pitch": payload.get("pitch") or 0,
        }
        async with httpx.AsyncClient(timeout=120.0, transport=self._transport) as client:
            response = await client.post(
                "https://api.murf.ai/v1/speech/generate",
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            )
            response.raise_for_status()
            data = response.json()

        audio_url = data.get("audioUrl") or data.get("audioFile")
        if not audio_url:
            tts_logger.warning("Murf response carried no audio file")
            return None

        saved = await download_media(audio_url, self.renders_dir, media_filename("audio", "mp3"),
                                     transport=self._transport)
        return self._result(saved) if saved else None


class EdgeTTSProvider(TTSProvider):
    name = "edge-tts"

    def is_available(self) -> bool:
        return True

    @staticmethod
    def rate_string(speaking_rate: Optional[float]) -> str:
        percent = round(((speaking_rate or 1.0) - 1.0) * 100)
        return f"{percent:+d}%"

    async def generate(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        voice = payload.get("voiceName") or edge_voice_for(payload.get("languageCode"), payload.get("gender"))
        self.renders_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.renders_dir / media_filename("audio", "mp3")

        communicate = edge_tts.Communicate(payload["text"], voice, rate=self.rate_string(payload.get("speakingRate")))
        await communicate.save(str(output_path))

        if not output_path.exists() or output_path.stat().st_size == 0:
            tts_logger.warning(f"Edge TTS produced no audio for voice {voice}")
            return None
        return self._result(output_path)


class TTSService:
    def __init__(self, providers: Dict[str, Any], default_provider: str = "edge-tts"):
        self.providers = providers
        self.default_provider = default_provider
        self.dispatcher = FallbackDispatcher("tts", providers, TTS_PROVIDER_ORDER, mock_audio)

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "TTSService":
        providers = {
            "murf": MurfTTSProvider(settings.MURF_API_KEY, transport=transport),
            "edge-tts": EdgeTTSProvider(),
        }
        return cls(providers, settings.TTS_PROVIDER)

    def get_available_providers(self) -> List[Dict[str, Any]]:
        return [{"name": name, "available": p.is_available()} for name, p in self.providers.items()]

    async def synthesize(self, text: str, language_code: str = "en-US", voice_name: Optional[str] = None,
                         gender: Optional[str] = None, speaking_rate: float = 1.0,
                         provider: Optional[str] = None) -> Dict[str, Any]:
        """Narrate text. A mock result ({isMock: True, audioUrl: ""}) means every provider failed."""
        payload = {
            "text": text,
            "languageCode": language_code,
            "voiceName": voice_name,
            "gender": gender,
            "speakingRate": speaking_rate,
        }
        result = await self.dispatcher.dispatch(provider or self.default_provider, payload)
        if result.get("isMock"):
            tts_logger.warning(f"❌ No TTS provider produced audio ({len(text)} chars)")
        else:
            tts_logger.info(f"✅ Narration ready via {result['provider']}: {result['duration']}ms")
        return result
