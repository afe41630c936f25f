"""Loader configuration: JSON file plus environment overrides."""

from __future__ import annotations

import codecs
import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

from csv_static_table.flags import LoadFlags
from csv_static_table.tokenizer import NEWLINE_POLICIES

SUPPORTED_CONFIG_SUFFIXES = {".json", ".yml", ".yaml"}
WRITE_NEWLINES = {"lf": "\n", "crlf": "\r\n"}

ENV_FLAGS = "CSV_STATIC_TABLE_FLAGS"
ENV_NEWLINE = "CSV_STATIC_TABLE_NEWLINE"
ENV_ENCODING = "CSV_STATIC_TABLE_ENCODING"

STARTER_CONFIG = {
    "flags": "default",
    "newline": "auto",
    "encoding": None,
    "write_newline": "lf",
}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class TableConfig:
    flags: LoadFlags = LoadFlags.DEFAULT
    newline: str = "auto"
    encoding: str | None = None
    write_newline: str = "lf"
    source: Path | None = field(default=None, compare=False)

    @property
    def line_terminator(self) -> str:
        return WRITE_NEWLINES[self.write_newline]

    def with_overrides(self, **changes: Any) -> "TableConfig":
        """Return a copy with every non-None keyword applied."""
        applied = {key: value for key, value in changes.items() if value is not None}
        return _validated(replace(self, **applied))


def _validated(config: TableConfig) -> TableConfig:
    if config.newline not in NEWLINE_POLICIES:
        raise ConfigError(f"newline must be one of {', '.join(NEWLINE_POLICIES)}, got {config.newline!r}")
    if config.write_newline not in WRITE_NEWLINES:
        raise ConfigError(
            f"write_newline must be one of {', '.join(sorted(WRITE_NEWLINES))}, got {config.write_newline!r}"
        )
    if config.encoding is not None:
        try:
            codecs.lookup(config.encoding)
        except LookupError as exc:
            raise ConfigError(f"Unknown encoding: {config.encoding}") from exc
    return config


def _parse_flags(value: Any) -> LoadFlags:
    if isinstance(value, bool):
        raise ConfigError("flags must be a string, a list of names, or an integer")
    if isinstance(value, int):
        return LoadFlags(value)
    if isinstance(value, list):
        value = ",".join(str(item) for item in value)
    if not isinstance(value, str):
        raise ConfigError("flags must be a string, a list of names, or an integer")
    try:
        return LoadFlags.parse(value)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def config_from_mapping(payload: Mapping[str, Any], *, source: Path | None = None) -> TableConfig:
    unknown = sorted(set(payload) - set(STARTER_CONFIG))
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
    config = TableConfig(source=source)
    if "flags" in payload:
        config = replace(config, flags=_parse_flags(payload["flags"]))
    for key in ("newline", "encoding", "write_newline"):
        if key in payload:
            value = payload[key]
            if value is not None and not isinstance(value, str):
                raise ConfigError(f"{key} must be a string")
            if value is None and key != "encoding":
                continue
            config = replace(config, **{key: value})
    return _validated(config)


def load_config_file(path: Path) -> TableConfig:
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigError("Config must be .json, .yml, or .yaml")
    if suffix in {".yml", ".yaml"}:
        raise ConfigError("YAML configs are not supported yet. Use JSON for now.")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read config: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("Config root must be a JSON object.")
    return config_from_mapping(payload, source=path)


def apply_environment(config: TableConfig, environ: Mapping[str, str] | None = None) -> TableConfig:
    environ = os.environ if environ is None else environ
    changes: dict[str, Any] = {}
    if environ.get(ENV_FLAGS):
        changes["flags"] = _parse_flags(environ[ENV_FLAGS])
    if environ.get(ENV_NEWLINE):
        changes["newline"] = environ[ENV_NEWLINE]
    if environ.get(ENV_ENCODING):
        changes["encoding"] = environ[ENV_ENCODING]
    return config.with_overrides(**changes)


def resolve_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> TableConfig:
    config = load_config_file(path) if path is not None else TableConfig()
    return apply_environment(config, environ)


def render_starter_config() -> str:
    return json.dumps(STARTER_CONFIG, indent=2) + "\n"
