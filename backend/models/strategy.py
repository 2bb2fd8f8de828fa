from enum import Enum
from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field


class SpecialistId(str, Enum):
    FACT_CHECK_SEARCH = "fact_check_search"
    WEB_SEARCH = "web_search"
    WEB_REASONING = "web_reasoning"
    AI_IMAGE_DETECTION = "ai_image_detection"
    CLAIM_EXTRACTION = "claim_extraction"


class Strategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    specialists: Tuple[SpecialistId, ...]
    timeouts: Dict[SpecialistId, float]
    consensus_threshold: float = Field(..., ge=0.0, le=1.0)

    def timeout_for(self, specialist: SpecialistId) -> float:
        return self.timeouts[specialist]

    @property
    def max_timeout(self) -> float:
        return max((self.timeouts[s] for s in self.specialists), default=0.0)
