"""
Centralized settings and path configuration for the roof estimator.

Values are read from environment variables and/or a .env file.
"""
import logging
from pathlib import Path
from typing import Annotated, Optional

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


# Comma separated in the environment
CommaList = Annotated[tuple[str, ...], NoDecode]


class Settings(BaseSettings):
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path = Field(default_factory=get_project_root)

    # Local rule table used when the database has no rules
    rules_csv: Optional[Path] = Field(None, validation_alias='PRICING_RULES_CSV')

    # Backend-as-a-service connection
    supabase_url: str = Field('', validation_alias='SUPABASE_URL')
    supabase_key: str = Field(
        '', validation_alias=AliasChoices('SUPABASE_SERVICE_ROLE_KEY', 'SUPABASE_ANON_KEY')
    )

    # Access
    admin_emails: CommaList = Field((), validation_alias='ADMIN_EMAILS')
    cors_origins: CommaList = Field(('*',), validation_alias='CORS_ORIGINS')

    log_level: str = Field('INFO', validation_alias='LOG_LEVEL')

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    @field_validator('admin_emails', 'cors_origins', mode='before')
    @classmethod
    def split_commas(cls, value):
        if isinstance(value, str):
            return tuple(v.strip() for v in value.split(',') if v.strip())
        return value

    @field_validator('admin_emails')
    @classmethod
    def lower_emails(cls, value):
        return tuple(e.lower() for e in value)

    @field_validator('log_level')
    @classmethod
    def upper_level(cls, value):
        return value.upper()

    @model_validator(mode='after')
    def default_rules_csv(self):
        if self.rules_csv is None:
            self.rules_csv = self.project_root / 'data' / 'pricing_rules.csv'
        if not self.cors_origins:
            self.cors_origins = ('*',)
        return self

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the environment and the project structure."""
        if project_root is None:
            return cls()
        return cls(project_root=project_root)


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None


def configure_logging(level: Optional[str] = None) -> None:
    """Install the application log format on the root logger."""
    logging.basicConfig(
        level=(level or get_settings().log_level),
        format="%(asctime)s %(levelname)s | %(name)s | %(message)s",
    )
