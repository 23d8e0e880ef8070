"""
Configuration loader for the white-background removal service.

Environment variables are centralized here to keep the rest of the code
focused on pixel work and to make operational tuning clear.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple, Union

from pydantic import Field, validator
from pydantic_settings import BaseSettings

from .mask_builder import DEFAULT_TOLERANCE, MASK_STRATEGIES, normalize_tolerance
from .pixel_buffer import ALPHA_FORMATS


class Settings(BaseSettings):
    # Mask + compositing
    tolerance: Union[int, Tuple[int, int, int]] = Field(DEFAULT_TOLERANCE, env="TOLERANCE")
    feather_strength: float = Field(0.0, env="FEATHER_STRENGTH")
    mask_strategy: str = Field("labels", env="MASK_STRATEGY")
    output_format: str = Field("PNG", env="OUTPUT_FORMAT")

    # Cloudflare R2 / S3-compatible storage
    r2_endpoint: Optional[str] = Field(None, env="R2_ENDPOINT")
    r2_access_key_id: Optional[str] = Field(None, env="R2_ACCESS_KEY_ID")
    r2_secret_access_key: Optional[str] = Field(None, env="R2_SECRET_ACCESS_KEY")
    r2_bucket_name: Optional[str] = Field(None, env="R2_BUCKET_NAME")
    r2_public_base_url: Optional[str] = Field(None, env="R2_PUBLIC_BASE_URL")

    # API + workers
    request_timeout_seconds: int = Field(30, env="REQUEST_TIMEOUT_SECONDS")
    max_batch_workers: int = Field(4, env="MAX_BATCH_WORKERS")
    log_level: str = Field("INFO", env="LOG_LEVEL")

    # Debugging
    debug: bool = Field(False, env="DEBUG")
    debug_output_dir: Path = Field(Path("/tmp/whitebg_debug"), env="DEBUG_OUTPUT_DIR")

    class Config:
        env_file = ".env"
        case_sensitive = False

    @validator("tolerance")
    def validate_tolerance(cls, v):  # noqa: B902
        normalize_tolerance(v)
        return v

    @validator("feather_strength")
    def validate_feather_strength(cls, v: float) -> float:  # noqa: B902
        if not 0.0 <= v <= 1.0:
            raise ValueError("FEATHER_STRENGTH must be between 0 and 1")
        return v

    @validator("mask_strategy")
    def validate_mask_strategy(cls, v: str) -> str:  # noqa: B902
        v = v.lower()
        if v not in MASK_STRATEGIES:
            raise ValueError("MASK_STRATEGY must be one of labels|queue")
        return v

    @validator("output_format")
    def validate_output_format(cls, v: str) -> str:  # noqa: B902
        # Losing alpha on encode is a deployment mistake, not a runtime failure.
        v = v.upper()
        if v not in ALPHA_FORMATS:
            raise ValueError("OUTPUT_FORMAT must be an alpha-capable lossless format: PNG|WEBP|TIFF")
        return v

    @validator("max_batch_workers")
    def validate_max_batch_workers(cls, v: int) -> int:  # noqa: B902
        if v < 1:
            raise ValueError("MAX_BATCH_WORKERS must be at least 1")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()


def r2_configured(settings: Optional[Settings] = None) -> bool:
    """True when every value needed to upload results to R2 is present."""
    settings = settings or get_settings()
    required = [
        settings.r2_endpoint,
        settings.r2_access_key_id,
        settings.r2_secret_access_key,
        settings.r2_bucket_name,
    ]
    return all(v is not None for v in required)
