"""Merging of configuration sources into a validated :class:`TagsyncConfig`."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Iterable, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import TagsyncConfig

ENV_PREFIX = "TAGSYNC__"

# Unprefixed names accepted for compatibility with older deployments.
LEGACY_ENV_KEYS = {
    "STASH_URL": "catalog.endpoint",
    "STASH_APIKEY": "catalog.api_key",
    "TAG_PATH": "storage.asset_dir",
    "CACHE_PATH": "storage.cache_dir",
    "DELETE_EXISTING": "sync.delete_existing",
}


def resolve_with_precedence(
    *,
    defaults: TagsyncConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> TagsyncConfig:
    """Layer overrides on top of ``defaults`` and validate the result.

    Later layers win: file, then environment, then CLI. Keys may be nested
    mappings or dotted paths such as ``"sync.force_refresh"``.

    Raises:
        ConfigError: If an override is malformed or the merged values fail
            validation.
    """
    layers = (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides))
    merged = defaults.model_dump(mode="python")
    for label, layer in layers:
        if layer is not None:
            _merge_into(merged, _expand(layer, label))

    try:
        return TagsyncConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect overrides from environment variables.

    ``TAGSYNC__SECTION__KEY`` variables map onto ``section.key``; the legacy
    names in :data:`LEGACY_ENV_KEYS` are read first so prefixed variables win.
    Values are parsed as YAML scalars, falling back to the raw string.
    """
    pairs: list[tuple[str, str]] = [
        (LEGACY_ENV_KEYS[name], value) for name, value in env.items() if name in LEGACY_ENV_KEYS
    ]
    for name, value in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        segments = name[len(ENV_PREFIX) :].lower().split("__")
        if all(segments):
            pairs.append((".".join(segments), value))

    overrides: dict[str, Any] = {}
    for dotted, raw in pairs:
        _set_path(overrides, dotted.split("."), _parse_scalar(raw))
    return overrides


def flatten_for_env(config: TagsyncConfig) -> Dict[str, str]:
    """Render every setting as a ``TAGSYNC__SECTION__KEY`` variable."""
    flat: Dict[str, str] = {}
    for path, value in _leaves(config.model_dump(mode="python"), ()):
        if isinstance(value, list):
            text = yaml.safe_dump(value, default_flow_style=True).strip()
        elif value is None:
            text = "null"
        else:
            text = str(value)
        flat[ENV_PREFIX + "__".join(part.upper() for part in path)] = text
    return flat


def _leaves(
    node: Mapping[str, Any], path: tuple[str, ...]
) -> Iterable[tuple[tuple[str, ...], Any]]:
    for key, value in node.items():
        if isinstance(value, MappingABC):
            yield from _leaves(value, (*path, str(key)))
        else:
            yield (*path, str(key)), value


def _parse_scalar(raw: str) -> Any:
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


def _expand(layer: Mapping[str, Any], label: str) -> dict[str, Any]:
    """Turn dotted keys into nested dictionaries."""
    if not isinstance(layer, MappingABC):
        raise ConfigError(f"{label.capitalize()} overrides must be a mapping.")

    nested: dict[str, Any] = {}
    for key, value in layer.items():
        if not isinstance(key, str):
            raise ConfigError(f"{label.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = _expand(value, label)
        try:
            _set_path(nested, key.split("."), value, strict=True)
        except ConfigError as exc:
            raise ConfigError(f"{label.capitalize()} override for {key}: {exc}") from exc
    return nested


def _set_path(
    target: dict[str, Any], path: list[str], value: Any, *, strict: bool = False
) -> None:
    node = target
    for segment in path[:-1]:
        child = node.get(segment)
        if not isinstance(child, dict):
            if child is not None and strict:
                raise ConfigError(f"'{segment}' already holds a non-mapping value")
            child = node[segment] = {}
        node = child
    leaf = path[-1]
    if isinstance(value, dict) and isinstance(node.get(leaf), dict):
        _merge_into(node[leaf], value)
    else:
        node[leaf] = value


def _merge_into(base: dict[str, Any], overrides: Mapping[str, Any]) -> None:
    for key, value in overrides.items():
        current = base.get(key)
        if isinstance(value, MappingABC) and isinstance(current, dict):
            _merge_into(current, value)
        else:
            base[key] = deepcopy(value)


__all__ = [
    "ENV_PREFIX",
    "LEGACY_ENV_KEYS",
    "env_overrides",
    "flatten_for_env",
    "resolve_with_precedence",
]
