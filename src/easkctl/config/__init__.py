"""Configuration — Pydantic models for easkctl settings."""

from __future__ import annotations

import json
import os
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from easkctl.errors import ConfigLoadError


class DisplayConfig(BaseModel):
    """How session output is presented."""

    mode: Literal["overlay", "surface"] = Field(
        default="overlay",
        description=(
            "'overlay' shows output in a transient popup that goes away once "
            "focus moves elsewhere after the command ends; 'surface' keeps it "
            "in a fixed read-only panel."
        ),
    )
    strip_header: bool = Field(
        default=True,
        description="Hide the preamble eask prints before the actual result",
    )
    scroll_to_end: bool = Field(
        default=True, description="Follow the end of the output as it grows"
    )
    show_tips: bool = Field(
        default=True, description="Show a tip the first time output appears"
    )


class EaskctlConfig(BaseModel):
    """Top-level easkctl configuration."""

    executable: str = Field(default="eask", description="Eask executable name or path")
    extra_flags: list[str] = Field(
        default_factory=list,
        description="Flags appended to every eask invocation (e.g. ['--verbose', '4'])",
    )
    timeout: float | None = Field(
        default=30.0,
        ge=0,
        description="Seconds before a running command is killed; 0 or null disables",
    )
    environment: dict[str, str] = Field(
        default_factory=dict,
        description="Environment overrides applied while a command runs",
    )
    help_token_offset: int = Field(
        default=1,
        ge=1,
        description="Token position of the command name in a top-level help listing",
    )
    display: DisplayConfig = Field(default_factory=DisplayConfig)

    @classmethod
    def load(cls, config_path: str | None = None) -> EaskctlConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            EASKCTL_EXECUTABLE     - Eask executable name or path
            EASKCTL_TIMEOUT        - Command timeout in seconds (0 disables)
            EASKCTL_DISPLAY        - 'overlay' or 'surface'
            EASKCTL_STRIP_HEADER   - '0'/'false' to keep eask's preamble

        Raises:
            ConfigLoadError: the config file is unreadable or invalid.
        """
        load_dotenv()

        config_data: dict[str, Any] = {}

        if config_path:
            if not os.path.exists(config_path):
                raise ConfigLoadError(config_path, ["file does not exist"])
            try:
                with open(config_path) as f:
                    config_data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigLoadError(config_path, [str(e)]) from e

        env_executable = os.environ.get("EASKCTL_EXECUTABLE")
        if env_executable:
            config_data["executable"] = env_executable

        env_timeout = os.environ.get("EASKCTL_TIMEOUT")
        if env_timeout:
            config_data["timeout"] = env_timeout

        display = dict(config_data.get("display", {}))

        env_display = os.environ.get("EASKCTL_DISPLAY")
        if env_display:
            display["mode"] = env_display.lower()

        env_strip = os.environ.get("EASKCTL_STRIP_HEADER")
        if env_strip:
            display["strip_header"] = env_strip.lower() not in ("0", "false", "no", "off")

        if display:
            config_data["display"] = display

        try:
            return cls.model_validate(config_data)
        except ValidationError as e:
            details = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise ConfigLoadError(config_path or "configuration", details) from e
