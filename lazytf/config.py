"""Configuration loading: file discovery, YAML parsing and account resolution.

Example ``lazytf.yaml``::

    accounts:
      prod:
        aws_profile: prod-admin
        region: eu-west-1
        composition_path: compositions/prod
        var_files: [prod.tfvars]
      sandbox:
        aws_profile: sandbox
        composition_path: compositions/sandbox-*
    ui:
      tick_interval: 0.1
      output_buffer_limit: 4000
"""

from __future__ import annotations

import glob
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .buffer import OUTPUT_BUFFER_LIMIT
from .errors import ConfigError
from .models import Account

logger = logging.getLogger(__name__)

CONFIG_CANDIDATES = ("lazytf.yaml", "Config.yaml", "config.yaml")


class AccountConfig(BaseModel):
    aws_profile: str
    composition_path: str
    region: Optional[str] = None
    var_files: List[str] = Field(default_factory=list)


class UISettings(BaseModel):
    """Dashboard tuning knobs; out-of-range values are clamped rather than rejected."""

    tick_interval: float = Field(default=0.1, description="Seconds between UI ticks")
    output_buffer_limit: int = Field(default=OUTPUT_BUFFER_LIMIT, description="Lines kept in the Output pane")

    @field_validator("tick_interval")
    @classmethod
    def _clamp_tick(cls, value: float) -> float:
        return min(max(value, 0.05), 1.0)

    @field_validator("output_buffer_limit")
    @classmethod
    def _clamp_limit(cls, value: int) -> int:
        return max(value, 100)


class Config(BaseModel):
    accounts: Dict[str, AccountConfig]
    ui: UISettings = Field(default_factory=UISettings)


@dataclass
class LoadedConfig:
    path: Path
    base_dir: Path
    config: Config


def find_config_path(cwd: Path, explicit: Optional[Path] = None) -> Path:
    if explicit is not None:
        resolved = explicit if explicit.is_absolute() else cwd / explicit
        if resolved.exists():
            return resolved
        raise ConfigError(f"Config file does not exist: {resolved}")

    for candidate in CONFIG_CANDIDATES:
        path = cwd / candidate
        if path.exists():
            return path

    raise ConfigError(f"No config file found. Expected one of: {', '.join(CONFIG_CANDIDATES)}")


def parse_config(text: str, source: str = "<string>") -> Config:
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML config at {source}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Failed to parse YAML config at {source}: expected a mapping at the top level")
    try:
        return Config.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config at {source}: {exc}") from exc


def load_config(cwd: Path, explicit: Optional[Path] = None) -> LoadedConfig:
    path = find_config_path(cwd, explicit)
    try:
        path = path.resolve()
    except OSError:
        pass
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read config file at {path}: {exc}") from exc

    config = parse_config(text, str(path))
    logger.info("loaded config from %s (%d accounts)", path, len(config.accounts))
    return LoadedConfig(path=path, base_dir=path.parent, config=config)


def has_glob(raw_path: str) -> bool:
    return any(ch in raw_path for ch in "*?[")


def resolve_composition_path(base_dir: Path, raw_path: str) -> Path:
    """Resolve ``raw_path`` against ``base_dir``; globs pick the first matching directory."""
    if has_glob(raw_path):
        pattern = raw_path if Path(raw_path).is_absolute() else str(base_dir / raw_path)
        matches = sorted(Path(p) for p in glob.glob(pattern) if Path(p).is_dir())
        if not matches:
            raise ConfigError(f"Path pattern `{raw_path}` did not match any directories from {base_dir}")
        return matches[0]

    path = Path(raw_path) if Path(raw_path).is_absolute() else base_dir / raw_path
    if not path.exists():
        raise ConfigError(f"Configured composition_path does not exist: {path}")
    if not path.is_dir():
        raise ConfigError(f"Configured composition_path is not a directory: {path}")
    return path


def fallback_composition_path(base_dir: Path, raw_path: str) -> Path:
    if has_glob(raw_path):
        return base_dir
    return Path(raw_path) if Path(raw_path).is_absolute() else base_dir / raw_path


def resolve_var_file_paths(raw_var_files: List[str], composition_path: Path) -> List[Path]:
    return [Path(raw) if Path(raw).is_absolute() else composition_path / raw for raw in raw_var_files]


def build_accounts(config: Config, base_dir: Path) -> Tuple[List[Account], List[str]]:
    """Turn validated config into accounts plus startup warning lines.

    An unresolvable composition path does not abort startup: the account
    keeps a fallback path and a ``composition_issue`` that blocks execution.
    """
    if not config.accounts:
        raise ConfigError("Config has no accounts. Add at least one account under `accounts:`")

    accounts: List[Account] = []
    lines: List[str] = []
    for name in sorted(config.accounts):
        account_cfg = config.accounts[name]
        issue: Optional[str] = None
        try:
            composition = resolve_composition_path(base_dir, account_cfg.composition_path)
        except ConfigError as exc:
            composition = fallback_composition_path(base_dir, account_cfg.composition_path)
            issue = f"composition_path `{account_cfg.composition_path}` invalid: {exc}"
            lines.append(f"warning: account `{name}` {issue}")
            lines.append(
                f"warning: using fallback path `{composition}` so UI can start; "
                "execution remains blocked until fixed"
            )
            logger.warning("account %s: %s", name, issue)

        accounts.append(
            Account(
                name=name,
                aws_profile=account_cfg.aws_profile,
                region=account_cfg.region,
                composition_path=composition,
                composition_issue=issue,
                var_files=resolve_var_file_paths(account_cfg.var_files, composition),
            )
        )
    return accounts, lines
