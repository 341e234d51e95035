"""Editable settings exposed over ``/config`` and persisted to ``config.yaml``.

Keys set in the real environment are read-only here. Everything else is
validated, written back into the config file (keeping its comments) and
applied to the running process.
"""

import os
import re
import shlex
from dataclasses import dataclass
from typing import Any, Literal

from statement_categorizer.core import settings
from statement_categorizer.domain.merchants import ClusterSettings
from statement_categorizer.logger import get_logger

ValueType = Literal["string", "int", "list"]

logger = get_logger(__name__)


class ConfigValueError(ValueError):
    pass


@dataclass(frozen=True)
class ConfigField:
    key: str
    label: str
    description: str
    category: str
    value_type: ValueType = "string"
    options: tuple[str, ...] | None = None
    min_value: int | None = None
    max_value: int | None = None
    restart_required: bool = False

    def clean(self, raw_value: str) -> str:
        """Return the value as it should be stored, or raise ``ConfigValueError``.

        An empty string means "unset" and is always accepted.
        """
        value = raw_value.strip()
        if not value:
            return ""
        if "\n" in value or "\r" in value:
            raise ConfigValueError("Value must be a single line.")
        if self.options:
            return self._clean_option(value, self.options)
        if self.value_type == "int":
            return str(self._clean_int(value))
        if self.value_type == "list":
            items = settings.parse_list(value.lower())
            if not items:
                raise ConfigValueError("Must list at least one word.")
            return ",".join(items)
        return value

    def _clean_option(self, value: str, options: tuple[str, ...]) -> str:
        normalized = value.upper()
        if normalized not in options:
            raise ConfigValueError(f"Must be one of: {', '.join(options)}.")
        return normalized

    def _clean_int(self, value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise ConfigValueError("Must be a whole number.") from None
        if self.min_value is not None and number < self.min_value:
            raise ConfigValueError(f"Must be at least {self.min_value}.")
        if self.max_value is not None and number > self.max_value:
            raise ConfigValueError(f"Must be at most {self.max_value}.")
        return number


CONFIG_FIELDS: tuple[ConfigField, ...] = (
    ConfigField(
        key="MAX_UPLOAD_BYTES",
        label="Max Upload Size",
        description="Largest accepted statement upload, in bytes.",
        category="Import",
        value_type="int",
        min_value=1,
    ),
    ConfigField(
        key="CLUSTER_SIGNATURE_TOKENS",
        label="Signature Length",
        description="Maximum number of words kept in a merchant signature.",
        category="Merchant Grouping",
        value_type="int",
        min_value=1,
        max_value=10,
    ),
    ConfigField(
        key="CLUSTER_MIN_TOKEN_LENGTH",
        label="Minimum Word Length",
        description="Words with this many characters or fewer are ignored.",
        category="Merchant Grouping",
        value_type="int",
        min_value=0,
        max_value=5,
    ),
    ConfigField(
        key="CLUSTER_MIN_CITY_LENGTH",
        label="Minimum City Length",
        description="A word before a trailing state code is treated as a city from this length.",
        category="Merchant Grouping",
        value_type="int",
        min_value=1,
        max_value=10,
    ),
    ConfigField(
        key="CLUSTER_NOISE_TOKENS",
        label="Noise Words",
        description="Comma-separated words dropped from merchant signatures.",
        category="Merchant Grouping",
        value_type="list",
    ),
    ConfigField(
        key="DATA_DIR",
        label="Data Directory",
        description="Directory for rules.json and ledger.json.",
        category="Storage",
        restart_required=True,
    ),
    ConfigField(
        key="LOG_DIR",
        label="Log Directory",
        description="Directory for application logs (app.log).",
        category="Storage",
        restart_required=True,
    ),
    ConfigField(
        key="LOG_LEVEL",
        label="Log Level",
        description="Logging verbosity for the application.",
        category="Storage",
        options=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        restart_required=True,
    ),
)

_FIELDS_BY_KEY = {field.key: field for field in CONFIG_FIELDS}
_CLUSTER_KEYS = frozenset(key for key in _FIELDS_BY_KEY if key.startswith("CLUSTER_"))
_KEY_LINE = re.compile(r"^\s*#?\s*([A-Z][A-Z0-9_]*)\s*:")


def _template_lines() -> list[str]:
    lines = [
        "# Statement Categorizer configuration",
        "# Environment variables with the same name take precedence over this file.",
    ]
    for field in CONFIG_FIELDS:
        lines.extend(["", f"# {field.label}: {field.description}", f"# {field.key}:"])
    return lines


def get_config_path() -> str:
    return settings.get_config_path() or os.path.join(
        os.getcwd(), "config", settings.CONFIG_FILENAME
    )


def build_config_context(*, field_errors: dict[str, str] | None = None) -> dict[str, Any]:
    config_path = get_config_path()
    file_values = settings.read_config_file(config_path)
    errors = field_errors or {}

    def describe(field: ConfigField) -> dict[str, Any]:
        env_override = settings.is_env_override(field.key)
        return {
            "key": field.key,
            "label": field.label,
            "description": field.description,
            "category": field.category,
            "value": os.getenv(field.key, "") if env_override else file_values.get(field.key, ""),
            "options": list(field.options) if field.options else None,
            "env_override": env_override,
            "restart_required": field.restart_required,
            "error": errors.get(field.key),
        }

    return {"config_path": config_path, "fields": [describe(field) for field in CONFIG_FIELDS]}


def apply_config_updates(form_values: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
    """Validate and persist updates; returns ``(errors, applied_updates)``.

    Nothing is written unless every submitted value is valid.
    """
    errors: dict[str, str] = {}
    updates: dict[str, str] = {}

    for key, raw_value in form_values.items():
        field = _FIELDS_BY_KEY.get(key)
        if field is None or settings.is_env_override(key):
            continue
        try:
            updates[key] = field.clean(raw_value)
        except ConfigValueError as exc:
            errors[key] = str(exc)

    if errors:
        return errors, {}
    if updates:
        _write_config_file(updates)
        _apply_process_env(updates)
    return {}, updates


def _render_line(key: str, value: str) -> str:
    if not value:
        return f"# {key}:"
    return f"{key}: {shlex.quote(value)}"


def _write_config_file(updates: dict[str, str]) -> None:
    config_path = get_config_path()
    os.makedirs(os.path.dirname(config_path) or ".", exist_ok=True)

    if os.path.exists(config_path):
        with open(config_path, encoding="utf-8") as handle:
            lines = handle.read().splitlines()
    else:
        lines = _template_lines()

    pending = dict(updates)
    for index, line in enumerate(lines):
        match = _KEY_LINE.match(line)
        if match and match.group(1) in pending:
            key = match.group(1)
            lines[index] = _render_line(key, pending.pop(key))
    lines.extend(_render_line(key, value) for key, value in pending.items())

    with open(config_path, "w", encoding="utf-8") as handle:
        handle.write("\n".join(lines).rstrip("\n") + "\n")
    logger.info("[CONFIG] Wrote %d settings to %s.", len(updates), config_path)


def _apply_process_env(updates: dict[str, str]) -> None:
    for key, value in updates.items():
        if value:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)


def apply_runtime_updates(app: Any, updates: dict[str, str]) -> None:
    """Push saved values into the running app; restart-only keys are left alone."""
    if "MAX_UPLOAD_BYTES" in updates:
        settings.MAX_UPLOAD_BYTES = settings.get_env_int(
            "MAX_UPLOAD_BYTES",
            settings.DEFAULT_MAX_UPLOAD_BYTES,
            min_value=1,
        )
        logger.info("[CONFIG] Max upload size set to %s bytes.", settings.MAX_UPLOAD_BYTES)

    if _CLUSTER_KEYS & updates.keys():
        service = getattr(getattr(app, "state", None), "service", None)
        if service is not None:
            service.cluster_settings = ClusterSettings.from_env()
            logger.info("[CONFIG] Merchant grouping settings refreshed.")
