"""Request bodies for the JSON API. Field names match the camelCase wire format."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr


class RegisterRequest(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AIVideoRequest(BaseModel):
    prompt: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    duration: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    negativePrompt: Optional[str] = None


class AvatarRequest(BaseModel):
    audioSource: Optional[str] = None
    script: Optional[str] = None
    customAudioUrl: Optional[str] = None
    avatarImage: Optional[str] = None
    avatarId: Optional[str] = None
    provider: Optional[str] = None
    voiceName: Optional[str] = None
    speakingRate: float = 1.0
    language: Optional[str] = "en-US"
    gender: Optional[str] = None
    prompt: Optional[str] = None
    title: Optional[str] = None


class GenerateVideoRequest(BaseModel):
    niche: Optional[str] = None
    duration: int = 30
    visualStyle: str = "cinematic"
    language: str = "en-US"
    voiceName: Optional[str] = None
    gender: Optional[str] = None
    speakingRate: float = 1.0
    generateImages: bool = False
    scriptProvider: Optional[str] = None
    scriptModel: Optional[str] = None
    imageProvider: Optional[str] = None


class TopicScriptRequest(BaseModel):
    topic: Optional[str] = None
    niche: Optional[str] = None
    tone: Optional[str] = None
    length: Optional[str] = None
    language: Optional[str] = None


class QueueCreateRequest(BaseModel):
    scheduledAt: Optional[datetime] = None
    platforms: List[str] = []


class QueueUpdateRequest(BaseModel):
    scheduledAt: Optional[datetime] = None
    platforms: Optional[List[str]] = None
    status: Optional[str] = None


class ImageRequest(BaseModel):
    prompt: Optional[str] = None
    style: str = "cinematic"
    aspectRatio: str = "9:16"
    provider: Optional[str] = None


class TTSRequest(BaseModel):
    text: Optional[str] = None
    languageCode: str = "en-US"
    voiceName: Optional[str] = None
    gender: Optional[str] = None
    speakingRate: float = 1.0
    provider: Optional[str] = None


class SocialPostRequest(BaseModel):
    videoId: Optional[str] = None
    platforms: List[str] = []


class TextToVideoRequest(BaseModel):
    prompt: Optional[str] = None
    images: List[str] = []
    duration: int = 30
    style: str = "modern"
    language: str = "en-US"
    voiceName: Optional[str] = None
    speakingRate: float = 1.0


class PreviewRequest(BaseModel):
    niche: Optional[str] = None
    duration: int = 30
    generateImages: bool = False


class ProviderTestRequest(BaseModel):
    provider: Optional[str] = None


class TextToAvatarRequest(BaseModel):
    text: Optional[str] = None
    audioSource: Optional[str] = None
    customAudioUrl: Optional[str] = None
    voiceName: Optional[str] = None
    language: Optional[str] = "en-US"
    speakingRate: float = 1.0
    prompt: Optional[str] = None


class YouTubeUploadRequest(BaseModel):
    videoPath: Optional[str] = None
    title: Optional[str] = None
    description: str = ""
    tags: List[str] = []
    privacyStatus: str = "private"
    videoId: Optional[str] = None


class InstagramUploadRequest(BaseModel):
    videoUrl: Optional[str] = None
    caption: Optional[str] = None
    hashtags: List[str] = []
    videoId: Optional[str] = None
