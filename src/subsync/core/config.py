"""Configuration management: TOML-based, global + per-repo merge."""

from __future__ import annotations

import copy
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

_GLOBAL_CONFIG_PATH = Path.home() / ".subsync" / "config.toml"

CONFIG_DIRNAME = ".subsync"

DEFAULT_CONFIG: dict[str, Any] = {
    "upstream": {
        "remote": "edk2",
        "branch": "master",
        "url": "",
    },
    "downstream": {
        "branch": "main",
    },
    "filter": {
        "path": "CryptoPkg/",
        "summary_pattern": "^CryptoPkg",
    },
    "sync": {
        "fallback_depth": 50,
        "local_scan_depth": 20,
        "local_scan_path_only": False,
        "backup_prefix": "backup-before-sync",
        "filtered_remote": "",
        "use_recorded_state": True,
    },
    "display": {
        "color": True,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def local_config_path(repo_path: str | Path) -> Path:
    return Path(repo_path) / CONFIG_DIRNAME / "config.toml"


def load_config(repo_path: str | Path | None = None) -> dict[str, Any]:
    """Load merged config: defaults <- global <- per-repo."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    if _GLOBAL_CONFIG_PATH.exists():
        with open(_GLOBAL_CONFIG_PATH, "rb") as f:
            global_conf = tomllib.load(f)
        config = _deep_merge(config, global_conf)

    if repo_path:
        local_path = local_config_path(repo_path)
        if local_path.exists():
            with open(local_path, "rb") as f:
                local_conf = tomllib.load(f)
            config = _deep_merge(config, local_conf)

    return config


def save_config(repo_path: str | Path | None, key: str, value: str) -> None:
    """Save a config value. Uses per-repo config if repo_path given, else global."""
    if repo_path:
        config_path = local_config_path(repo_path)
    else:
        config_path = _GLOBAL_CONFIG_PATH

    config_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "rb") as f:
            existing = tomllib.load(f)

    parts = key.split(".")
    target = existing
    for part in parts[:-1]:
        if part not in target:
            target[part] = {}
        target = target[part]

    target[parts[-1]] = _parse_value(value)

    _write_toml(config_path, existing)


def get_config_value(config: dict, key: str) -> Any:
    """Get a nested config value by dotted key."""
    parts = key.split(".")
    current = config
    for part in parts:
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return None
    return current


@dataclass(frozen=True)
class SyncSettings:
    """Typed view of the merged config consumed by the sync pipeline."""

    remote: str
    upstream_branch: str
    local_branch: str
    path: str
    summary_pattern: str
    url: str = ""
    fallback_depth: int = 50
    local_scan_depth: int = 20
    local_scan_path_only: bool = False
    backup_prefix: str = "backup-before-sync"
    filtered_remote: str = ""
    use_recorded_state: bool = True

    @property
    def upstream_ref(self) -> str:
        return f"{self.remote}/{self.upstream_branch}"

    @property
    def filtered_remote_name(self) -> str:
        return self.filtered_remote or f"{self.remote}-filtered"

    @classmethod
    def from_config(cls, config: dict[str, Any], **overrides: Any) -> SyncSettings:
        upstream = config.get("upstream", {})
        downstream = config.get("downstream", {})
        filt = config.get("filter", {})
        sync = config.get("sync", {})
        values = {
            "remote": upstream.get("remote", "edk2"),
            "upstream_branch": upstream.get("branch", "master"),
            "url": upstream.get("url", "") or "",
            "local_branch": downstream.get("branch", "main"),
            "path": filt.get("path", "CryptoPkg/"),
            "summary_pattern": filt.get("summary_pattern", "^CryptoPkg"),
            "fallback_depth": int(sync.get("fallback_depth", 50)),
            "local_scan_depth": int(sync.get("local_scan_depth", 20)),
            "local_scan_path_only": bool(sync.get("local_scan_path_only", False)),
            "backup_prefix": sync.get("backup_prefix", "backup-before-sync"),
            "filtered_remote": sync.get("filtered_remote", "") or "",
            "use_recorded_state": bool(sync.get("use_recorded_state", True)),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _parse_value(value: str) -> Any:
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _write_toml(path: Path, data: dict) -> None:
    """Write dict as TOML (simple serializer for flat/nested dicts)."""
    lines: list[str] = []
    _write_toml_section(lines, data, [])
    path.write_text("\n".join(lines).lstrip("\n") + "\n", encoding="utf-8")


def _write_toml_section(lines: list[str], data: dict, prefix: list[str]) -> None:
    scalars = {k: v for k, v in data.items() if not isinstance(v, dict)}
    tables = {k: v for k, v in data.items() if isinstance(v, dict)}
    for key, value in scalars.items():
        if isinstance(value, list):
            lines.append(f"{key} = [")
            for item in value:
                lines.append(f"    {_toml_value(item)},")
            lines.append("]")
        else:
            lines.append(f"{key} = {_toml_value(value)}")
    for key, value in tables.items():
        section = ".".join(prefix + [key])
        lines.append(f"\n[{section}]")
        _write_toml_section(lines, value, prefix + [key])


def _toml_value(v: Any) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, str):
        escaped = v.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return str(v)
