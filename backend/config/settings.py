from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Loads all environment variables into a single, accessible object."""
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    LOG_LEVEL: str = "INFO"

    # 'package.module:function' returning the Collaborators bundle
    COLLABORATORS_FACTORY: Optional[str] = None

    BREAKER_FAILURE_THRESHOLD: int = 5
    BREAKER_COOLDOWN_SECONDS: float = 60.0

    CACHE_FRESHNESS_HOURS: float = 24.0
    CACHE_TIMEOUT: float = 2.0
    AUDIT_TIMEOUT: float = 5.0

    PIPELINE_LATENCY_CEILING: float = 30.0
    INTAKE_TIMEOUT: float = 10.0
    CLASSIFY_TIMEOUT: float = 8.0
    SYNTHESIS_TIMEOUT: float = 15.0

    FACT_CHECK_TIMEOUT: float = 8.0
    WEB_SEARCH_TIMEOUT: float = 8.0
    WEB_REASONING_TIMEOUT: float = 12.0
    AI_IMAGE_DETECTION_TIMEOUT: float = 10.0
    CLAIM_EXTRACTION_TIMEOUT: float = 6.0

    SATIRE_CONFIDENCE: float = 0.9

    @property
    def CACHE_FRESHNESS_SECONDS(self) -> float:
        return self.CACHE_FRESHNESS_HOURS * 3600.0


settings = Settings()
