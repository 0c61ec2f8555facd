"""
Pydantic models for YAML configuration validation.
Provides schema validation with clear error messages for sink configurations.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from secern.core.errors import ConfigError, TemplateExistsError
from secern.core.models import DISCARD_SENTINEL, DestinationKind, SinkDeclaration
from secern.utils.logging import get_logger

log = get_logger("secern.config")


class SinkConfig(BaseModel):
    """Configuration for a single sink."""
    name: str = Field(..., min_length=1, description="Identifier of the sink")
    file_name: Optional[str] = Field(..., description="Output file path, or 'null' to discard matches")
    patterns: List[str] = Field(..., min_length=1, description="Regex patterns; any one matching claims the line")
    invert: bool = Field(False, description="Claim the lines that do NOT match")

    @field_validator("file_name")
    @classmethod
    def validate_file_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("file_name cannot be empty, use 'null' to discard matches")
        return v

    @field_validator("invert", mode="before")
    @classmethod
    def validate_invert(cls, v):
        # `invert: null` reads the same as leaving it out
        return False if v is None else v

    @property
    def destination(self) -> DestinationKind:
        if self.file_name is None or self.file_name == DISCARD_SENTINEL:
            return DestinationKind.DISCARD
        return DestinationKind.FILE

    def to_declaration(self) -> SinkDeclaration:
        kind = self.destination
        return SinkDeclaration(
            name=self.name,
            destination=kind,
            patterns=list(self.patterns),
            path=self.file_name if kind is DestinationKind.FILE else None,
            invert=self.invert,
        )


class SecernConfig(BaseModel):
    """Root configuration model: the ordered list of sinks."""
    sinks: List[SinkConfig] = Field(..., description="Sinks, evaluated in declaration order")

    def declarations(self) -> List[SinkDeclaration]:
        return [s.to_declaration() for s in self.sinks]

    def duplicate_names(self) -> List[str]:
        counts = Counter(s.name for s in self.sinks)
        return [name for name, n in counts.items() if n > 1]


def parse_config(raw_config: Any, source: str = "<config>") -> SecernConfig:
    """
    Validate an already-parsed YAML document.

    Raises:
        ConfigError: If the document does not match the schema.
    """
    if not isinstance(raw_config, dict):
        raise ConfigError(
            f"Configuration validation failed for {source}:\n"
            f"  top-level document must be a mapping with a 'sinks' key"
        )

    try:
        config = SecernConfig(**raw_config)
    except ValidationError as e:
        # Format validation errors nicely
        error_messages = []
        for error in e.errors():
            field_path = '.'.join(str(loc) for loc in error['loc'])
            error_messages.append(f"  {field_path}: {error['msg']}")

        raise ConfigError(
            f"Configuration validation failed for {source}:\n" +
            '\n'.join(error_messages)
        ) from e

    if not config.sinks:
        log.warning("Configuration %s declares no sinks, every line is unclaimed", source)

    dupes = config.duplicate_names()
    if dupes:
        log.warning("Configuration %s declares duplicate sink names: %s", source, ", ".join(dupes))

    return config


def load_and_validate_config(config_path: str) -> SecernConfig:
    """
    Load and validate a secern configuration from YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated SecernConfig object

    Raises:
        ConfigError: If the file cannot be read, is not valid YAML or fails validation
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            raw_config = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except OSError as e:
        raise ConfigError(
            f"Unable to open specified configuration file ({config_path}) due to error: {e}"
        ) from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Configuration file {config_path} is not valid UTF-8: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing configuration file ({config_path}) due to error: {e}") from e

    return parse_config(raw_config, source=config_path)


TEMPLATE_SINKS = [
    {
        "name": "first_sink",
        "file_name": "first_output.txt",
        "patterns": ["^[a-zA-Z0-9]+$"],
        "invert": None,
    },
    {
        "name": "second_sink",
        "file_name": "second_output.txt",
        "patterns": ["😎*"],
        "invert": None,
    },
]


def render_template() -> str:
    """Render the sample two-sink configuration document."""
    return yaml.safe_dump(
        {"sinks": TEMPLATE_SINKS},
        sort_keys=False,
        allow_unicode=True,
    )


def generate_template(path: str) -> None:
    """
    Write a sample configuration to ``path``.

    Raises:
        TemplateExistsError: If ``path`` already exists.
        ConfigError: If the file cannot be written for any other reason.
    """
    try:
        with open(path, "x", encoding="utf-8") as f:
            f.write(render_template())
    except FileExistsError as e:
        raise TemplateExistsError(path) from e
    except OSError as e:
        raise ConfigError(f"Unable to create template file '{path}' due to error: {e}") from e

    log.info("Wrote configuration template to %s", path)
