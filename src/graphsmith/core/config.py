"""Configuration management for Graphsmith.

All settings are loaded with Pydantic Settings from environment variables
with the ``GRAPHSMITH_`` prefix, then from a ``.env`` file, then from the
defaults below.

Example .env file:
    GRAPHSMITH_TEMPLATE_SOURCE=directory
    GRAPHSMITH_TEMPLATES_DIR=workflows
    GRAPHSMITH_DEFAULT_STEPS=25
    GRAPHSMITH_SERVER_PORT=7860

A global ``config`` instance is created at import time:

    from graphsmith.core.config import config

    print(config.workflow_api_url)
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GraphsmithConfig(BaseSettings):
    """Main configuration for Graphsmith.

    Attributes
    ----------
    Template Settings:
        template_source : Literal["remote", "directory"]
            Where workflow templates come from
        workflow_api_url : str
            Base URL of the remote workflow template service
        workflow_api_timeout : float
            Timeout in seconds for template service requests
        templates_dir : Path
            Directory of ``*.json`` templates for the directory source

    Generation Defaults:
        default_negative_prompt : str
            Negative prompt used when a request supplies none
        default_steps : int
            Sampler step count injected when a request supplies none
        default_guidance : float
            Guidance value injected when a request supplies none
        generation_converter : Literal["compiler", "direct"]
            Converter used by the generate endpoint

    Server Settings:
        server_host : str
            Server bind address
        server_port : int
            Server port (1024-65535)
        log_level : str
            Root log level
        cors_origins : list[str]
            Origins allowed by the CORS middleware
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GRAPHSMITH_",
        case_sensitive=False,
    )

    # Template settings
    template_source: Literal["remote", "directory"] = Field(
        default="remote",
        description="Where workflow templates are loaded from",
    )
    workflow_api_url: str = Field(
        default="http://localhost:3001",
        description="Base URL of the workflow template service",
    )
    workflow_api_timeout: float = Field(
        default=30.0,
        description="Template service request timeout in seconds",
        gt=0,
    )
    templates_dir: Path = Field(
        default=Path("workflows"),
        description="Directory of workflow templates (directory source)",
    )

    # Generation defaults
    default_negative_prompt: str = Field(
        default="text, watermark",
        description="Negative prompt used when none is supplied",
    )
    default_steps: int = Field(default=20, ge=1, le=200)
    default_guidance: float = Field(default=3.5, ge=0.0)
    generation_converter: Literal["compiler", "direct"] = Field(
        default="compiler",
        description="Converter used after prompt injection",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    def __init__(self, **kwargs):
        """Initialize configuration and create the templates directory."""
        super().__init__(**kwargs)

        self.templates_dir.mkdir(parents=True, exist_ok=True)


# Global configuration instance
config = GraphsmithConfig()
