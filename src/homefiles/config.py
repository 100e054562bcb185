"""Declaration file and runtime settings.

Settings resolve in this order: command-line flag, ``HOMEFILES_*``
environment variable, declaration file, built-in default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from platformdirs import user_state_dir
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from homefiles.deploy.content import PathResolver
from homefiles.deploy.entries import FileDeclaration, FileEntry, make_entry
from homefiles.deploy.generations import GenerationStore

CONFIG_FILENAME = "homefiles.yaml"

# Declaration sections and the base directory their relative targets use.
SECTIONS: tuple[str, ...] = ("files", "config_files")

_DECLARATION_KEYS = {
    "target": str,
    "text": str,
    "source": str,
    "executable": bool,
    "recursive": bool,
    "on_change": str,
    "force": bool,
    "out_of_store": bool,
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigError(RuntimeError):
    """Raised when the declaration file is missing or malformed."""


@dataclass(slots=True)
class Settings:
    root: Path
    state_dir: Path
    config_home: Path
    backup_ext: str | None = None
    dry_run: bool = False
    verbose: bool = False


def _absolute(value: str | os.PathLike[str]) -> Path:
    return Path(os.path.abspath(os.path.expanduser(str(value))))


def _env_flag(environ: Mapping[str, str], name: str) -> bool | None:
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip().lower() in _TRUE_VALUES


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    environ = os.environ if environ is None else environ
    if explicit := environ.get("HOMEFILES_CONFIG"):
        return _absolute(explicit)
    config_home = environ.get("XDG_CONFIG_HOME") or "~/.config"
    return _absolute(config_home) / "homefiles" / CONFIG_FILENAME


def load_config_file(path: Path) -> dict[str, Any]:
    """Read the declaration file into a plain mapping."""
    if not path.is_file():
        raise ConfigError(f"Declaration file not found: {path}")

    yaml = YAML(typ="safe", pure=True)
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.load(handle) or {}
    except YAMLError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return payload


def load_settings(
    config: Mapping[str, Any],
    *,
    root: str | None = None,
    state_dir: str | None = None,
    backup_ext: str | None = None,
    dry_run: bool | None = None,
    verbose: bool | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    environ = os.environ if environ is None else environ

    root_path = _absolute(
        _first(root, environ.get("HOMEFILES_ROOT"), config.get("root"), "~")
    )
    state_path = _absolute(
        _first(
            state_dir,
            environ.get("HOMEFILES_STATE_DIR"),
            config.get("state_dir"),
            user_state_dir("homefiles"),
        )
    )
    config_home = _absolute(
        _first(config.get("config_home"), environ.get("XDG_CONFIG_HOME"), root_path / ".config")
    )
    ext = _first(backup_ext, environ.get("HOMEFILES_BACKUP_EXT"), config.get("backup_ext"))

    return Settings(
        root=root_path,
        state_dir=state_path,
        config_home=config_home,
        backup_ext=str(ext) if ext is not None else None,
        dry_run=bool(_first(dry_run, _env_flag(environ, "HOMEFILES_DRY_RUN"), False)),
        verbose=bool(_first(verbose, _env_flag(environ, "HOMEFILES_VERBOSE"), False)),
    )


def _parse_declaration(section: str, name: str, value: Any, base_path: Path) -> FileDeclaration:
    if not isinstance(value, dict):
        raise ConfigError(f"{section}.{name}: expected a mapping, got {type(value).__name__}")

    fields: dict[str, Any] = {}
    for key, raw in value.items():
        expected = _DECLARATION_KEYS.get(key)
        if expected is None:
            raise ConfigError(f"{section}.{name}: unknown option '{key}'")
        if raw is None:
            continue
        if not isinstance(raw, expected):
            raise ConfigError(
                f"{section}.{name}.{key}: expected {expected.__name__}, got {type(raw).__name__}"
            )
        fields[key] = raw

    return FileDeclaration(name=str(name), base_path=str(base_path), **fields)


def load_declarations(config: Mapping[str, Any], settings: Settings) -> list[FileDeclaration]:
    """Collect every declared file, in file order, across all sections."""
    bases = {"files": settings.root, "config_files": settings.config_home}
    declarations: list[FileDeclaration] = []
    for section in SECTIONS:
        block = config.get(section) or {}
        if not isinstance(block, dict):
            raise ConfigError(f"'{section}' must be a mapping of names to files")
        for name, value in block.items():
            declarations.append(_parse_declaration(section, name, value, bases[section]))
    return declarations


def load_entries(config_path: Path, config: Mapping[str, Any], settings: Settings) -> list[FileEntry]:
    """Turn the declaration file into engine entries.

    Inline text is materialized into the content store under the state
    directory; source paths resolve relative to the declaration file.
    """
    store = GenerationStore(settings.state_dir)
    resolver = PathResolver(config_path.parent)
    return [
        make_entry(declaration, str(settings.root), store.content, resolver)
        for declaration in load_declarations(config, settings)
    ]
