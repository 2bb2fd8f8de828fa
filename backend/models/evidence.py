from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Stance(str, Enum):
    """Direction an evidence item takes relative to the claim."""
    SUPPORTS = "supports"
    REFUTES = "refutes"
    NEUTRAL = "neutral"


class EvidenceItem(BaseModel):
    """Single cited source produced by a specialist."""
    model_config = ConfigDict(frozen=True)

    source_url: str = Field(..., min_length=1)
    title: str = ""
    excerpt: str = ""
    credibility_tier: int = Field(3, ge=1, le=5, description="1 highest, 5 lowest")
    specialist: str = Field(..., min_length=1)
    stance: Optional[Stance] = None
