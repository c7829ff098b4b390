"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to all Palisade settings
- Falls back to sensible defaults when config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

from palisade.domain.services.security_group_allocation import (
    DEFAULT_SECURITY_GROUP_QUOTA,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CloudConfig:
    """Regions scanned by the resolver and the optional inventory seed."""
    regions: tuple[str, ...] = ("ap-guangzhou",)
    inventory_path: str = ""


@dataclass(frozen=True)
class AllocatorConfig:
    """Security group allocation settings."""
    security_group_quota: int = DEFAULT_SECURITY_GROUP_QUOTA
    auto_group_description: str = "automation created"


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False


@dataclass(frozen=True)
class PalisadeConfig:
    """Root configuration for the Palisade application."""
    cloud: CloudConfig = field(default_factory=CloudConfig)
    allocator: AllocatorConfig = field(default_factory=AllocatorConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "WARNING"


def _env_override(data: dict, prefix: str = "PALISADE") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern PALISADE_SECTION_KEY.
    For example: PALISADE_CLOUD_REGIONS=ap-guangzhou,ap-shanghai,
    PALISADE_ALLOCATOR_SECURITY_GROUP_QUOTA=50
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        parts = key[len(prefix) + 1:].lower().split("_", 1)
        if len(parts) == 2 and parts[0] in _SECTIONS:
            section, field_name = parts
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
        else:
            data[key[len(prefix) + 1:].lower()] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s is not a JSON object, ignoring", path)
        return {}
    return data


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    # Convert comma-separated strings to tuples for tuple fields
    for f in dataclasses.fields(cls):
        if f.name in filtered and f.type == "tuple[str, ...]":
            val = filtered[f.name]
            if isinstance(val, str):
                filtered[f.name] = tuple(v.strip() for v in val.split(",") if v.strip())
            elif isinstance(val, list):
                filtered[f.name] = tuple(val)

        if f.name in filtered and isinstance(filtered[f.name], str):
            if f.type == "int":
                filtered[f.name] = int(filtered[f.name])
            elif f.type == "bool":
                filtered[f.name] = filtered[f.name].lower() in ("true", "1", "yes")

    return cls(**filtered)


_SECTIONS = {
    "cloud": CloudConfig,
    "allocator": AllocatorConfig,
    "telemetry": TelemetryConfig,
}


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "PALISADE",
) -> PalisadeConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (PALISADE_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to palisade.json in CWD.
        env_prefix: Environment variable prefix. Defaults to PALISADE.
    """
    config_path = Path(path) if path else Path("palisade.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    sections = {
        name: _build_sub_config(cls, data.get(name) or {})
        for name, cls in _SECTIONS.items()
    }
    return PalisadeConfig(
        **sections,
        log_level=str(data.get("log_level", "WARNING")),
    )
