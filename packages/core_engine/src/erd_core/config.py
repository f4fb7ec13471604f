"""Import settings, loaded from an optional YAML file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from erd_core.engines import Engine, parse_engine
from erd_core.errors import ConfigError
from erd_core.issues import to_lines
from erd_core.schema import CONFIG_SCHEMA, load_schema, schema_issues

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "erd.yaml"


@dataclass
class ImportConfig:
    engine: Engine = Engine.GENERIC
    autofix: bool = True
    fallback: bool = True
    large_file_threshold: int = 100
    diagram_name: str = "New Diagram"
    validate_metadata: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportConfig":
        issues = schema_issues(data, load_schema(CONFIG_SCHEMA), code="CONFIG_INVALID")
        if issues:
            raise ConfigError("Invalid configuration:\n" + "\n".join(to_lines(issues)))
        defaults = cls()
        return cls(
            engine=parse_engine(data.get("engine", defaults.engine)),
            autofix=data.get("autofix", defaults.autofix),
            fallback=data.get("fallback", defaults.fallback),
            large_file_threshold=data.get("large_file_threshold", defaults.large_file_threshold),
            diagram_name=data.get("diagram_name", defaults.diagram_name),
            validate_metadata=data.get("validate_metadata", defaults.validate_metadata),
        )


def load_config(path: Optional[str] = None) -> ImportConfig:
    """Read ``path``, or ``erd.yaml`` in the working directory when it exists.

    No file means defaults.
    """
    if path is None:
        if not Path(DEFAULT_CONFIG_FILE).exists():
            return ImportConfig()
        path = DEFAULT_CONFIG_FILE

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {path}")

    with config_path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc

    if data is None:
        return ImportConfig()
    if not isinstance(data, dict):
        raise ConfigError("Config YAML must parse to an object/map at root.")

    logger.debug("loaded config from %s", config_path)
    return ImportConfig.from_dict(data)
