"""Engine configuration.

Configuration is loaded from:
- environment variables prefixed with ``STEPFLOW_``
- and a local `.env` file (if present)

Pydantic-settings supports overriding the env file in tests via
``EngineSettings(_env_file=path_to_env)``.
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from stepflow.logging import configure_logging


class EngineSettings(BaseSettings):
    """Settings shared by every workflow built without explicit settings."""

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Structured JSON lines or human readable text",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug logging for stepflow loggers",
    )

    # No cap by default: a loop runs until its condition is satisfied.
    max_loop_iterations: int | None = Field(
        default=None,
        ge=1,
        description="Fail a run when a loop executes this many times without exiting",
    )
    validate_outputs: bool = Field(
        default=True,
        description="Validate step outputs against their declared output schema",
    )

    model_config = SettingsConfigDict(
        env_prefix="STEPFLOW_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        configure_logging(self.log_level, fmt=self.log_format)
        if self.debug:
            logging.getLogger("stepflow").setLevel(logging.DEBUG)
