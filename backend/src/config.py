"""Application configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.

The heuristic thresholds below (suggestion cut-off, PDF line/cell
tolerances) are policy values tuned against vendor reports seen so far.
Override them per deployment rather than editing the defaults.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_TELARUS_MASTER_CSV_PATH = str(
    Path(__file__).resolve().parent / "infrastructure" / "reference_data" / "telarus-vendor-map-fields-master.csv"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Environment Variables:
        LOG_LEVEL: Logging level (default INFO)
        LOG_JSON: Emit JSON log lines (default True)
        TELARUS_MASTER_CSV_PATH: Path to the vendor/origin reference layout table
        SUGGESTION_MIN_SCORE: Minimum score for a field suggestion to be returned
        SUGGESTION_LIMIT: Maximum number of field suggestions per header
        PDF_LINE_Y_TOLERANCE: Vertical distance (PDF units) still counted as the same line
        PDF_MIN_CELL_GAP: Minimum horizontal gap that separates two cells
        PDF_GAP_MEDIAN_MULTIPLIER: Multiplier applied to the median gap of a line
        PDF_MIN_GAPS_FOR_MEDIAN: Gaps required before the median is trusted
        MAX_UPLOAD_SIZE_BYTES: Largest accepted deposit file
    """

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Reference data
    TELARUS_MASTER_CSV_PATH: str = DEFAULT_TELARUS_MASTER_CSV_PATH

    # Field suggestions
    SUGGESTION_MIN_SCORE: float = 0.82
    SUGGESTION_LIMIT: int = 3

    # PDF table reconstruction
    PDF_LINE_Y_TOLERANCE: float = 2.0
    PDF_MIN_CELL_GAP: float = 24.0
    PDF_GAP_MEDIAN_MULTIPLIER: float = 3.0
    PDF_MIN_GAPS_FOR_MEDIAN: int = 4

    # Uploads
    MAX_UPLOAD_SIZE_BYTES: int = 25 * 1024 * 1024

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache for singleton behavior.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
