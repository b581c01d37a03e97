"""Application configuration management."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    log_level: str = "INFO"

    # Face model settings
    face_model_name: str = Field(default="buffalo_l", alias="FACE_MODEL_NAME")
    face_model_root: str = Field(default="~/.insightface", alias="FACE_MODEL_ROOT")
    face_det_size: int = Field(default=640, ge=128, alias="FACE_DET_SIZE")
    face_det_floor_threshold: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        alias="FACE_DET_FLOOR_THRESHOLD",
        description="Detector-level score floor; per-request thresholds filter above it",
    )

    # Detection request defaults
    default_min_confidence: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        alias="DEFAULT_MIN_CONFIDENCE",
        description="Minimum detection confidence used when a request does not supply one",
    )

    # Overlay asset
    overlay_path: str = Field(
        default="",
        alias="OVERLAY_PATH",
        description="Path to the eyewear overlay image; empty uses the built-in noggles",
    )
    overlay_width: int = Field(default=150, ge=1, alias="OVERLAY_WIDTH")
    overlay_height: int = Field(default=80, ge=1, alias="OVERLAY_HEIGHT")
    overlay_scale_factor: float = Field(
        default=2.7,
        gt=0.0,
        alias="OVERLAY_SCALE_FACTOR",
        description="Overlay width as a multiple of the horizontal eye distance",
    )

    # Export
    output_filename: str = Field(default="nounified.png", alias="OUTPUT_FILENAME")

    @property
    def overlay_size(self) -> tuple[int, int]:
        """Native (width, height) of the overlay asset."""
        return (self.overlay_width, self.overlay_height)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
