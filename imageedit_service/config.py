"""
Configuration loader for the image edit service.

Environment variables are centralized here to keep the rest of the code
focused on editing logic and to make the chroma-key tolerances tunable
without a redeploy.
"""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, validator
from pydantic_settings import BaseSettings

from .colorspace import parse_hex_color


class Settings(BaseSettings):
    # Generative model
    # API_KEY is the variable name the browser build used; keep accepting it.
    gemini_api_key: Optional[str] = Field(
        None, validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY")
    )
    gemini_model: str = Field("gemini-2.5-flash-image", env="GEMINI_MODEL")

    # API
    request_timeout_seconds: int = Field(60, env="REQUEST_TIMEOUT_SECONDS")
    max_upload_bytes: int = Field(20 * 1024 * 1024, env="MAX_UPLOAD_BYTES")
    log_level: str = Field("INFO", env="LOG_LEVEL")

    # Chroma-key tunables
    chroma_key_color: str = Field("#FF00FF", env="CHROMA_KEY_COLOR")
    chroma_key_hue_tolerance: float = Field(25.0, env="CHROMA_KEY_HUE_TOLERANCE")
    chroma_key_min_saturation: float = Field(0.25, env="CHROMA_KEY_MIN_SATURATION")
    chroma_key_min_lightness: float = Field(0.15, env="CHROMA_KEY_MIN_LIGHTNESS")
    chroma_key_max_lightness: float = Field(0.95, env="CHROMA_KEY_MAX_LIGHTNESS")
    chroma_key_workers: int = Field(1, env="CHROMA_KEY_WORKERS")

    class Config:
        env_file = ".env"
        case_sensitive = False

    @validator("chroma_key_color")
    def validate_key_color(cls, v: str) -> str:  # noqa: B902
        parse_hex_color(v)
        return v

    @validator("chroma_key_hue_tolerance")
    def validate_hue_tolerance(cls, v: float) -> float:  # noqa: B902
        if not 0.0 <= v <= 180.0:
            raise ValueError("CHROMA_KEY_HUE_TOLERANCE must be within 0..180 degrees")
        return v

    @validator("chroma_key_min_saturation", "chroma_key_min_lightness", "chroma_key_max_lightness")
    def validate_unit_interval(cls, v: float) -> float:  # noqa: B902
        if not 0.0 <= v <= 1.0:
            raise ValueError("saturation/lightness thresholds must be within 0..1")
        return v

    @validator("chroma_key_max_lightness")
    def validate_lightness_window(cls, v: float, values: dict) -> float:  # noqa: B902
        low = values.get("chroma_key_min_lightness")
        if low is not None and v < low:
            raise ValueError("CHROMA_KEY_MAX_LIGHTNESS must not be below CHROMA_KEY_MIN_LIGHTNESS")
        return v

    @validator("chroma_key_workers", "request_timeout_seconds", "max_upload_bytes")
    def validate_positive(cls, v: int) -> int:  # noqa: B902
        if v < 1:
            raise ValueError("value must be a positive integer")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()
