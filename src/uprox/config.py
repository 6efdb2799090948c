"""
Upgrades configuration.

Defaults work out of the box; a YAML file can override them:

    default_kind: uups
    unsafe_allow: [constructor]
    manifest_path: .uprox/manifest.yaml
    log_level: INFO
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

from uprox.errors import ConfigError
from uprox.logging_utils import setup_logging
from uprox.model import ProxyKind


@dataclass
class UpgradesConfig:
    """
    Settings for the upgrades tooling.

    Properties:
        default_kind: Proxy kind used when deploy_proxy gets no kind
        unsafe_allow: Validation errors allowed for every deployment
        unsafe_skip_storage_check: Skip layout checks on upgrade (warns)
        manifest_path: Where to persist the manifest (.json or .yaml); None keeps it in memory
        chain_id: Chain identifier for new chains
        num_accounts: Accounts derived for new chains
        log_level: Level used by configure_logging
    """

    default_kind: ProxyKind = ProxyKind.TRANSPARENT
    unsafe_allow: List[str] = field(default_factory=list)
    unsafe_skip_storage_check: bool = False
    manifest_path: Optional[str] = None
    chain_id: int = 31337
    num_accounts: int = 10
    log_level: str = "WARNING"


def config_from_dict(d: Dict[str, Any]) -> UpgradesConfig:
    known = {f.name for f in fields(UpgradesConfig)}
    unknown = set(d) - known
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
    values = dict(d)
    if "default_kind" in values:
        try:
            values["default_kind"] = ProxyKind(values["default_kind"])
        except ValueError:
            raise ConfigError(f"Invalid default_kind: {values['default_kind']!r}") from None
    if "log_level" in values:
        level = str(values["log_level"]).upper()
        if not isinstance(getattr(logging, level, None), int):
            raise ConfigError(f"Invalid log_level: {values['log_level']!r}")
        values["log_level"] = level
    if "unsafe_allow" in values:
        values["unsafe_allow"] = list(values["unsafe_allow"] or [])
    return UpgradesConfig(**values)


def config_to_dict(config: UpgradesConfig) -> Dict[str, Any]:
    return {
        "default_kind": config.default_kind.value,
        "unsafe_allow": list(config.unsafe_allow),
        "unsafe_skip_storage_check": config.unsafe_skip_storage_check,
        "manifest_path": config.manifest_path,
        "chain_id": config.chain_id,
        "num_accounts": config.num_accounts,
        "log_level": config.log_level,
    }


def configure_logging(config: UpgradesConfig) -> None:
    """Set up logging at the configured level."""
    setup_logging(config.log_level)


def load_config(filepath: str) -> UpgradesConfig:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigError: If the file is not a mapping or has invalid values
    """
    try:
        with open(filepath) as fh:
            d = yaml.safe_load(fh)
    except FileNotFoundError:
        raise FileNotFoundError(f"Config file not found: {filepath}")
    if d is None:
        return UpgradesConfig()
    if not isinstance(d, dict):
        raise ConfigError(f"Config file must contain a mapping: {filepath}")
    return config_from_dict(d)
