"""Merge configuration sources into a validated :class:`ClipstashConfig`.

Settings are two levels deep (section, then key), so every source is reduced
to ``(section, key, value)`` triples before merging. Keys are checked against
the models while merging, which lets errors name the source that set them.
"""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from typing import Any, Dict, Iterator, Mapping, get_origin

import yaml
from pydantic import BaseModel, ValidationError

from clipstash.capture.models import ContentCategory

from .exceptions import ConfigError
from .models import ClipstashConfig

ENV_PREFIX = "CLIPSTASH__"

_CATEGORY_TAGS = tuple(category.value for category in ContentCategory)


def resolve_with_precedence(
    *,
    defaults: ClipstashConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> ClipstashConfig:
    """Merge configuration sources, later sources winning.

    Order of precedence, lowest first: defaults, config file, environment, CLI.
    Each source may nest settings under their section (``{"history":
    {"max_items": 10}}``) or use dotted keys (``{"history.max_items": 10}``).

    Raises:
        ConfigError: If a source names an unknown setting, lists an unknown
            category tag, or the merged values fail validation.
    """
    merged = defaults.model_dump(mode="json")
    for source_name, source in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if source is None:
            continue
        for section, key, value in _settings(source, source_name=source_name):
            if (section, key) == ("history", "excluded_categories"):
                value = _category_tags(value, source_name=source_name)
            merged[section][key] = value

    try:
        return ClipstashConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(_describe(exc)) from exc


def parse_env_overrides(env: Mapping[str, str]) -> dict[str, dict[str, Any]]:
    """Extract ``CLIPSTASH__SECTION__KEY`` variables from ``env``.

    Values are coerced against the type of the setting they target: string
    settings keep the raw text, list settings accept either a YAML flow list
    or comma-separated entries, everything else is parsed as a YAML scalar.

    Raises:
        ConfigError: If a variable does not name a known section and key.
    """
    overrides: dict[str, dict[str, Any]] = {}
    for name, raw_value in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        path = [segment.lower() for segment in name[len(ENV_PREFIX) :].split("__") if segment]
        if len(path) != 2:
            raise ConfigError(
                f"Environment variable {name} must name a section and a key, "
                f"for example {ENV_PREFIX}HISTORY__MAX_ITEMS."
            )
        section, key = path
        annotation = _field_annotation(section, key, source_name="environment")
        overrides.setdefault(section, {})[key] = _coerce_env_value(raw_value, annotation)
    return overrides


def flatten_for_env(config: ClipstashConfig) -> Dict[str, str]:
    """Render ``config`` as the environment variables that would reproduce it."""
    flat: Dict[str, str] = {}
    for section, settings in config.model_dump(mode="json").items():
        for key, value in settings.items():
            flat[f"{ENV_PREFIX}{section.upper()}__{key.upper()}"] = _render_env_value(value)
    return flat


def _settings(source: Mapping[str, Any], *, source_name: str) -> Iterator[tuple[str, str, Any]]:
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    for raw_key, value in source.items():
        if not isinstance(raw_key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        path = [segment.strip() for segment in raw_key.split(".") if segment.strip()]
        if len(path) == 2:
            _field_annotation(path[0], path[1], source_name=source_name)
            yield path[0], path[1], value
        elif len(path) == 1:
            _section_model(path[0], source_name=source_name)
            # An empty section in YAML loads as None.
            if value is None:
                continue
            if not isinstance(value, MappingABC):
                raise ConfigError(
                    f"{source_name.capitalize()} value for '{raw_key}' must be a mapping of settings."
                )
            for key, child in value.items():
                _field_annotation(path[0], str(key), source_name=source_name)
                yield path[0], str(key), child
        else:
            raise ConfigError(f"Unknown configuration key '{raw_key}' in {source_name} overrides.")


def _section_model(section: str, *, source_name: str) -> type[BaseModel]:
    field = ClipstashConfig.model_fields.get(section)
    if field is None or not isinstance(field.annotation, type):
        known = ", ".join(ClipstashConfig.model_fields)
        raise ConfigError(
            f"Unknown configuration section '{section}' in {source_name} overrides; expected one of: {known}."
        )
    return field.annotation


def _field_annotation(section: str, key: str, *, source_name: str) -> Any:
    model = _section_model(section, source_name=source_name)
    field = model.model_fields.get(key)
    if field is None:
        raise ConfigError(f"Unknown configuration key '{section}.{key}' in {source_name} overrides.")
    return field.annotation


def _coerce_env_value(raw_value: str, annotation: Any) -> Any:
    if annotation is str:
        return raw_value
    if get_origin(annotation) is list and not raw_value.lstrip().startswith("["):
        return [part.strip() for part in raw_value.split(",") if part.strip()]
    try:
        return yaml.safe_load(raw_value)
    except yaml.YAMLError:
        return raw_value


def _render_env_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return yaml.safe_dump(value, default_flow_style=True).strip()
    return "null" if value is None else str(value)


def _category_tags(value: Any, *, source_name: str) -> list[str]:
    if isinstance(value, (str, ContentCategory)):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ConfigError(
            f"history.excluded_categories from {source_name} must be a list of category tags."
        )

    tags: list[str] = []
    for entry in value:
        tag = entry.value if isinstance(entry, ContentCategory) else str(entry).strip().lower()
        if tag not in _CATEGORY_TAGS:
            raise ConfigError(
                f"Unknown category '{entry}' in history.excluded_categories from {source_name}; "
                f"expected one of: {', '.join(_CATEGORY_TAGS)}."
            )
        if tag not in tags:
            tags.append(tag)
    return tags


def _describe(exc: ValidationError) -> str:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return f"Invalid configuration values: {problems}"


__all__ = ["resolve_with_precedence", "parse_env_overrides", "flatten_for_env", "ENV_PREFIX"]
