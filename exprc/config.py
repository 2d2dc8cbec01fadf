"""exprc Configuration: project-level .exprcrc.yml support.

Loads configuration from .exprcrc.yml (or .exprcrc.yaml, .exprcrc.json) found
in the working directory or any parent. Command-line flags override it.

Example .exprcrc.yml:
    max_depth: 200          # parenthesis nesting limit
    emit: asm               # asm | llvm | ast
    certify: true           # prove every compilation with Z3
    symbolic_literals: false
    error_format: text      # text | json
    log_level: INFO
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from exprc.compiler.parser import DEFAULT_MAX_DEPTH, max_depth_ceiling

logger = logging.getLogger(__name__)

EMIT_FORMATS = ("asm", "llvm", "ast")
ERROR_FORMATS = ("text", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ExprcConfig:
    """Project-level exprc configuration."""
    max_depth: int = DEFAULT_MAX_DEPTH
    emit: str = "asm"
    certify: bool = False
    symbolic_literals: bool = False
    error_format: str = "text"
    log_level: str = "WARNING"

    def validate(self) -> None:
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")
        ceiling = max_depth_ceiling()
        if self.max_depth > ceiling:
            raise ValueError(f"max_depth must be at most {ceiling}, got {self.max_depth}")
        if self.emit not in EMIT_FORMATS:
            raise ValueError(f"emit must be one of {EMIT_FORMATS}, got {self.emit!r}")
        if self.error_format not in ERROR_FORMATS:
            raise ValueError(f"error_format must be one of {ERROR_FORMATS}, got {self.error_format!r}")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got {self.log_level!r}")


# ---------------------------------------------------------------------------
# Config file names (in priority order)
# ---------------------------------------------------------------------------

_CONFIG_FILES = [
    ".exprcrc.yml",
    ".exprcrc.yaml",
    ".exprcrc.json",
]


def find_config(start_dir: str = ".") -> Optional[str]:
    """Find the nearest config file by walking up from start_dir."""
    current = os.path.abspath(start_dir)
    while True:
        for name in _CONFIG_FILES:
            path = os.path.join(current, name)
            if os.path.isfile(path):
                return path
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return None


def load_config(path: Optional[str] = None, start_dir: str = ".") -> ExprcConfig:
    """Load configuration from a file.

    If no path is given, searches for a config file starting from start_dir.
    If no config file is found, or it cannot be read or parsed, returns
    defaults. Values of the wrong type or out of range raise ValueError.
    """
    if path is None:
        path = find_config(start_dir)

    if path is None:
        return ExprcConfig()

    try:
        with open(path, "r") as f:
            content = f.read()
    except OSError as e:
        logger.warning("cannot read config %s: %s", path, e)
        return ExprcConfig()

    try:
        if path.endswith(".json"):
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        logger.warning("ignoring malformed config %s: %s", path, e)
        return ExprcConfig()

    if data is None:
        data = {}
    if not isinstance(data, dict):
        logger.warning("ignoring config %s: top level is not a mapping", path)
        return ExprcConfig()

    logger.debug("loaded config from %s", path)
    return _dict_to_config(data)


def _typed(data: Dict[str, Any], key: str, kind: type) -> Any:
    value = data[key]
    # bool is an int subclass; only flags may be bools
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ValueError(f"{key} must be {kind.__name__}, got {type(value).__name__} {value!r}")
    return value


def _dict_to_config(data: Dict[str, Any]) -> ExprcConfig:
    """Convert a parsed dict to ExprcConfig."""
    config = ExprcConfig()

    if "max_depth" in data:
        config.max_depth = _typed(data, "max_depth", int)
    if "emit" in data:
        config.emit = _typed(data, "emit", str)
    if "certify" in data:
        config.certify = _typed(data, "certify", bool)
    if "symbolic_literals" in data:
        config.symbolic_literals = _typed(data, "symbolic_literals", bool)
    if "error_format" in data:
        config.error_format = _typed(data, "error_format", str)
    if "log_level" in data:
        config.log_level = _typed(data, "log_level", str).upper()

    config.validate()
    return config
