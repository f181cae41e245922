"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32


class ProjectionConfig(BaseModel):
    """Projection engine limits."""

    max_depth: int = DEFAULT_MAX_DEPTH  # Nested model levels before failing

    @field_validator("max_depth")
    @classmethod
    def validate_max_depth(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_depth must be at least 1")
        return v


class Settings(BaseSettings):
    """Main configuration class."""

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "mongo_querier"
    server_selection_timeout_ms: int = 5000

    # Observability
    logfire_token: str = ""
    log_level: str = "INFO"
    environment: Literal["dev", "staging", "prod"] = "dev"

    # Nested configuration sections
    projection: ProjectionConfig = Field(default_factory=ProjectionConfig)

    model_config = SettingsConfigDict(
        env_prefix="MONGO_QUERIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="after")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the level name so logging accepts it."""
        return v.upper()

    def load_yaml_config(self, config_path: Path | None = None) -> None:
        """Load and merge YAML configuration."""
        if config_path is None:
            return

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["projection"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name]

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            for key in ["mongodb_url", "mongodb_database", "log_level"]:
                if key in yaml_config:
                    setattr(self, key, yaml_config[key])

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise


@lru_cache()
def get_settings(config_path: Path | None = None) -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config(config_path)
    return settings
