from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from .scoring.saf import ScoringParams


class Settings(BaseSettings):
    # App Config
    APP_NAME: str = "ExplainRank Scoring Service"
    APP_VERSION: str = "0.1.0"
    PORT: int = 8000
    ENVIRONMENT: str = "development"

    # Database
    DATABASE_URL: str = "sqlite:///./explainrank.db"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # HTTP
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    RATE_LIMIT: str = "120/minute"

    # Embeddings (pgvector column size and API validation)
    EMBEDDING_DIMENSIONS: int = 1536

    # Scoring
    SCORING_MAX_DEPTH: int = 5
    SCORING_DEPTH_DECAY: float = 0.5
    SCORING_VOLUME_SATURATION: float = 20.0
    SCORING_PRIOR_STRENGTH: float = 10.0
    SCORING_BASELINE_RATE: float = 0.1
    SCORING_EXPLORATION_WEIGHT: float = 0.1
    SCORING_WILSON_Z: float = 1.96
    SCORING_MIN_SIMILARITY: float = 0.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    def scoring_params(self) -> ScoringParams:
        return ScoringParams(
            max_depth=self.SCORING_MAX_DEPTH,
            depth_decay=self.SCORING_DEPTH_DECAY,
            volume_saturation=self.SCORING_VOLUME_SATURATION,
            prior_strength=self.SCORING_PRIOR_STRENGTH,
            baseline_rate=self.SCORING_BASELINE_RATE,
            exploration_weight=self.SCORING_EXPLORATION_WEIGHT,
            wilson_z=self.SCORING_WILSON_Z,
            min_similarity=self.SCORING_MIN_SIMILARITY,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
