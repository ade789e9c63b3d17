"""Typed shapes for the videos.metadata JSON column, one per job kind"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


class JobMetadataBase(BaseModel):
    """Fields shared by every job kind. Keys keep the camelCase names stored in the column."""
    model_config = ConfigDict(extra="allow")

    kind: str
    hashtags: List[str] = Field(default_factory=list)
    aiVideoProvider: Optional[str] = None
    aiVideoRequestId: Optional[str] = None
    pollingAttempts: Optional[int] = None
    error: Optional[str] = None
    completedAt: Optional[str] = None

    @model_validator(mode="after")
    def check_provider_pairing(self):
        # The status poller selects on both keys together
        if bool(self.aiVideoProvider) != bool(self.aiVideoRequestId):
            raise ValueError("aiVideoProvider and aiVideoRequestId must be set together")
        return self


class AIVideoMetadata(JobMetadataBase):
    """Text-to-video job dispatched to a video provider"""
    kind: Literal["ai_video"] = "ai_video"
    aiVideoModel: Optional[str] = None
    aiVideoUrl: Optional[str] = None
    prompt: str = ""
    generationType: str = "text-to-video"


class AvatarMetadata(JobMetadataBase):
    """Lip-synced avatar job dispatched to an avatar provider"""
    kind: Literal["avatar"] = "avatar"
    audioSource: str = "tts"
    audioUrl: Optional[str] = None
    avatarImage: Optional[str] = None
    script: Optional[str] = None
    generationType: str = "avatar"


class ScriptMetadata(JobMetadataBase):
    """Script-only draft produced from a topic"""
    kind: Literal["script"] = "script"
    topic: str = ""
    scriptData: Dict[str, Any] = Field(default_factory=dict)
    generatedAt: Optional[str] = None


class GeneratedMetadata(JobMetadataBase):
    """Scene-based video assembled from script, narration and images"""
    kind: Literal["generated"] = "generated"
    voiceName: Optional[str] = None
    speakingRate: float = 1.0
    hasImages: bool = False
    scriptProvider: Optional[str] = None


JobMetadata = Annotated[
    Union[AIVideoMetadata, AvatarMetadata, ScriptMetadata, GeneratedMetadata],
    Field(discriminator="kind"),
]

_job_metadata_adapter = TypeAdapter(JobMetadata)


def parse_metadata(data: Optional[Dict[str, Any]]) -> JobMetadataBase:
    """Validate a stored metadata dict, inferring the kind for rows written without one"""
    data = dict(data or {})
    if "kind" not in data:
        data["kind"] = "ai_video" if data.get("aiVideoProvider") else "generated"
    return _job_metadata_adapter.validate_python(data)


def dump_metadata(metadata: JobMetadataBase) -> Dict[str, Any]:
    """Serialize metadata for the JSON column"""
    return metadata.model_dump(exclude_none=True)


def merge_metadata(current: Optional[Dict[str, Any]], **changes) -> Dict[str, Any]:
    """Apply changes to stored metadata and re-validate the result"""
    merged = {**(current or {}), **changes}
    return dump_metadata(parse_metadata(merged))
