from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .evidence import EvidenceItem


class InputKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    URL = "url"
    TEXT = "text"


class ContentType(str, Enum):
    FACTUAL_CLAIM = "factual_claim"
    OPINION = "opinion"
    SATIRE = "satire"
    ADVERTISEMENT = "advertisement"


class StakesLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class VerificationRequest(BaseModel):
    """Request body for /verify and input to the pipeline."""
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "content": "NASA announced discovery of alien life",
                "input_kind": "text",
            }
        },
    )

    content: str = Field(..., min_length=1, max_length=20000)
    input_kind: InputKind
    claim_text: Optional[str] = Field(None, max_length=5000)

    @field_validator("claim_text")
    @classmethod
    def blank_claim_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = " ".join(v.split())
        return v or None

    @model_validator(mode="after")
    def url_content_is_http(self) -> "VerificationRequest":
        if self.input_kind == InputKind.URL and not self.content.strip().lower().startswith(("http://", "https://")):
            raise ValueError("URL submissions must use an http(s) address")
        return self


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    content_type: ContentType = Field(
        ..., validation_alias=AliasChoices("content_type", "contentType")
    )
    stakes: StakesLevel = Field(
        ..., validation_alias=AliasChoices("stakes", "stakes_level", "stakesLevel")
    )
    ai_detection_relevant: bool = Field(
        False, validation_alias=AliasChoices("ai_detection_relevant", "aiDetectionRelevant")
    )
    satire: bool = Field(
        False, validation_alias=AliasChoices("satire", "satire_source", "satireSource")
    )
    known_source: Optional[str] = Field(
        None, validation_alias=AliasChoices("known_source", "knownSource")
    )

    @field_validator("content_type", "stakes", mode="before")
    @classmethod
    def lowercase_labels(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @classmethod
    def conservative_default(cls, ai_detection_relevant: bool = False) -> "ClassificationResult":
        """Fallback when classification keeps failing: treat as a high-stakes factual claim."""
        return cls(
            content_type=ContentType.FACTUAL_CLAIM,
            stakes=StakesLevel.HIGH,
            ai_detection_relevant=ai_detection_relevant,
            satire=False,
        )


class Claim(BaseModel):
    """One independently verified statement and the evidence attached to it."""
    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1)
    evidence: List[EvidenceItem] = Field(default_factory=list)
