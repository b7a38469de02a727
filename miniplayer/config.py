"""
Configuration for MiniPlayer

Storage locations and log level come from environment variables:

    MINIPLAYER_DATA_PATH    catalog data file (default: ./music.xml)
    MINIPLAYER_SCHEMA_PATH  catalog schema file (default: bundled music.xsd)
    MINIPLAYER_LOG_LEVEL    loguru level for configure_logging() (default: WARNING)
"""

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import BaseModel, Field

PACKAGE_DIR = Path(__file__).resolve().parent

DATA_FILENAME = "music.xml"
SCHEMA_FILENAME = "music.xsd"
DEFAULT_SCHEMA_PATH = PACKAGE_DIR / "data" / SCHEMA_FILENAME
DEFAULT_LOG_LEVEL = "WARNING"


class StorageConfig(BaseModel):
    """Where the catalog schema and data live."""

    data_path: Path = Field(Path(DATA_FILENAME), description="Catalog data file (XML)")
    schema_path: Path = Field(DEFAULT_SCHEMA_PATH, description="Catalog schema file (XSD)")

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """Build a config from MINIPLAYER_* environment variables, falling back to defaults."""
        data_path = os.environ.get("MINIPLAYER_DATA_PATH")
        schema_path = os.environ.get("MINIPLAYER_SCHEMA_PATH")
        config = cls(
            data_path=Path(data_path) if data_path else Path(DATA_FILENAME),
            schema_path=Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH,
        )
        logger.debug(f"Storage config: data={config.data_path} schema={config.schema_path}")
        return config


def configure_logging(level: Optional[str] = None) -> None:
    """Replace loguru's default sink with a single stderr sink at the given level."""
    level = level or os.environ.get("MINIPLAYER_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
