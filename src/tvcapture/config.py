"""
Configuration management for tvcapture using Pydantic settings.

Loads configuration from:
1. .env file (if present)
2. config/config.json (defaults)
3. Environment variables (override with TVCAPTURE_ prefix)
"""

import json
import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from tvcapture import __version__

logger = logging.getLogger(__name__)

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

# Load .env file from project root (if exists)
_env_file = PROJECT_ROOT / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
    logger.debug(f"Loaded environment from {_env_file}")


def load_json_config() -> dict[str, Any]:
    """Load configuration from config.json file."""
    config_file = CONFIG_DIR / "config.json"
    if config_file.exists():
        with open(config_file) as f:
            return json.load(f)
    return {}


_json_config = load_json_config()


class CompositorConfig(BaseSettings):
    """Capture compositing and JPEG export configuration."""

    model_config = {"env_prefix": "TVCAPTURE_COMPOSITOR_"}

    product_name: str = Field(
        default=_json_config.get("compositor", {}).get("product_name", "KonomiTV"),
        description="Product name written to the EXIF Software tag",
    )
    product_version: str = Field(
        default=_json_config.get("compositor", {}).get("product_version", __version__),
        description="Product version written to the EXIF Software tag",
    )
    jpeg_quality: int = Field(
        default=_json_config.get("compositor", {}).get("jpeg_quality", 99),
        description="JPEG quality for exported captures (1-100)",
    )

    @field_validator("jpeg_quality")
    @classmethod
    def validate_jpeg_quality(cls, v):
        if v < 1 or v > 100:
            raise ValueError(f"jpeg_quality must be between 1 and 100, got {v}")
        return v

    @property
    def software(self) -> str:
        """Value of the EXIF Software tag."""
        return f"{self.product_name} version {self.product_version}"


class FontConfig(BaseSettings):
    """Fonts used to render comments, tried in order."""

    model_config = {"env_prefix": "TVCAPTURE_FONT_"}

    paths: list[str] = Field(
        default=_json_config.get("font", {}).get(
            "paths",
            [
                "/usr/share/fonts/opentype/noto/NotoSansCJK-Bold.ttc",
                "/usr/share/fonts/truetype/noto/NotoSansJP-Bold.ttf",
                "/usr/share/fonts/truetype/open-sans/OpenSans-Bold.ttf",
                "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
            ],
        ),
        description="Bold font files for comment text; first loadable one wins",
    )

    @field_validator("paths")
    @classmethod
    def validate_paths(cls, v):
        if not v:
            raise ValueError("at least one font path is required")
        return v


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = {"env_prefix": "TVCAPTURE_LOGGING_"}

    level: str = Field(
        default=_json_config.get("logging", {}).get("level", "INFO"),
        description="Log level",
    )
    file: str = Field(
        default=_json_config.get("logging", {}).get("file", ""),
        description="Log file path (empty to log to the console only)",
    )


# Global configuration instances
compositor_config = CompositorConfig()
font_config = FontConfig()
logging_config = LoggingConfig()


def setup_logging() -> None:
    """Configure logging for the application with log rotation."""
    from logging.handlers import RotatingFileHandler

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, logging_config.level.upper()))

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if logging_config.file:
        log_dir = Path(logging_config.file).parent
        log_dir.mkdir(parents=True, exist_ok=True)

        # 10MB max, keep 5 backups
        file_handler = RotatingFileHandler(
            logging_config.file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logger.info(
        f"Logging configured: level={logging_config.level}, "
        f"file={logging_config.file or '(console only)'}"
    )
