"""
Configuration management for iso-yt-toolkit

Using pydantic-settings for type-safe configuration with environment variable support.
All settings can be overridden via environment variables with the TOOLKIT_ prefix.
Command-line flags override these values for a single invocation.
"""

import os
from typing import List
from pydantic import Field, ValidationError, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigurationError


ISO_TYPES = ("netinst", "DVD-1", "CD-1")
PROVIDERS = ("anthropic", "openai")

DEFAULT_MIRROR_ROOTS = [
    "https://cdimage.debian.org/debian-cd",
    "https://mirror.de.leaseweb.net/debian-cd",
    "https://mirror.cs.princeton.edu/pub/mirrors/debian-cd",
    "https://mirrors.edge.kernel.org/debian-cd",
    "https://mirror.fcix.net/debian-cd",
    "https://ftp.acc.umu.se/debian-cd",
]


class IsoConfig(BaseSettings):
    """Configuration for the Debian ISO downloader"""

    model_config = SettingsConfigDict(
        env_prefix='TOOLKIT_ISO_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    arch: str = Field(
        default="amd64",
        description="Debian architecture to download"
    )

    iso_type: str = Field(
        default="netinst",
        description="ISO flavour: netinst, DVD-1 or CD-1"
    )

    # The first root is the default origin (listing and SHA256SUMS source)
    mirror_roots: List[str] = Field(
        default_factory=lambda: list(DEFAULT_MIRROR_ROOTS),
        description="Ordered debian-cd mirror roots, default origin first"
    )

    download_dir: str = Field(
        default=os.path.join(os.path.expanduser("~"), "Downloads"),
        description="Directory the ISO is written to"
    )

    verify_checksum: bool = Field(
        default=True,
        description="Verify the SHA-256 checksum after download"
    )

    find_fastest_mirror: bool = Field(
        default=True,
        description="Probe mirror latency before downloading"
    )

    # Probe timeouts
    probe_timeout: float = Field(
        default=1.0,
        description="Per-candidate ping / connect timeout in seconds",
        gt=0,
        le=10
    )

    http_probe_max_time: float = Field(
        default=2.0,
        description="Total time allowed for the HTTP fallback probe",
        gt=0,
        le=30
    )

    listing_timeout: int = Field(
        default=30,
        description="Timeout for directory listing and SHA256SUMS requests",
        ge=1,
        le=300
    )

    download_timeout: int = Field(
        default=60,
        description="Read timeout while streaming the ISO",
        ge=5,
        le=1800
    )

    chunk_size: int = Field(
        default=1048576,  # 1MB
        description="Bytes per streamed chunk",
        ge=4096,
        le=16777216
    )

    @validator('iso_type')
    def validate_iso_type(cls, v):
        if v not in ISO_TYPES:
            raise ValueError(f"ISO type must be one of {list(ISO_TYPES)}")
        return v

    @validator('mirror_roots')
    def validate_mirror_roots(cls, v):
        if not v:
            raise ValueError("At least one mirror root is required")
        return [root.rstrip('/') for root in v]

    @property
    def iso_dir(self) -> str:
        """Directory under current/<arch>/ holding this ISO type"""
        return "iso-dvd" if self.iso_type.startswith("DVD") else "iso-cd"


class SummarizerConfig(BaseSettings):
    """Configuration for the YouTube transcript summarizer"""

    model_config = SettingsConfigDict(
        env_prefix='TOOLKIT_SUMMARY_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    default_language: str = Field(
        default="pl",
        description="Primary subtitle / summary language"
    )

    fallback_language: str = Field(
        default="en",
        description="Subtitle language tried when the primary one is empty"
    )

    provider: str = Field(
        default="anthropic",
        description="LLM provider used for summaries"
    )

    anthropic_model: str = Field(
        default="claude-opus-4-1-20250805",
        description="Anthropic model to use for summaries"
    )

    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use for summaries"
    )

    max_tokens: int = Field(
        default=1000,
        description="Token budget for the summary",
        ge=100,
        le=16384
    )

    api_timeout: int = Field(
        default=120,
        description="LLM API timeout in seconds",
        ge=10,
        le=600
    )

    metadata_timeout: int = Field(
        default=10,
        description="Timeout for the video title lookup",
        ge=1,
        le=120
    )

    @validator('provider')
    def validate_provider(cls, v):
        if v not in PROVIDERS:
            raise ValueError(f"Provider must be one of {list(PROVIDERS)}")
        return v

    @property
    def model(self) -> str:
        return self.anthropic_model if self.provider == "anthropic" else self.openai_model


class AppConfig(BaseSettings):
    """Main application configuration"""

    model_config = SettingsConfigDict(
        env_prefix='TOOLKIT_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'  # Ignore unknown environment variables
    )

    # Sub-configurations
    iso: IsoConfig = Field(default_factory=IsoConfig)
    summary: SummarizerConfig = Field(default_factory=SummarizerConfig)

    # Global settings
    debug: bool = Field(
        default=False,
        description="Enable debug logging"
    )


def load_config() -> AppConfig:
    """Read settings from the environment and .env; invalid values become ConfigurationError"""
    try:
        return AppConfig()
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}")
