"""
todo-ledger — configuration schema and validation.

File: src/todo_ledger/config/schema.py
Last updated: 2026-10-19

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Deterministic deep-merge helpers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Unknown keys are errors so typos never silently fall back to defaults.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict

from todo_ledger.constants import (
    ARCHIVE_FILE,
    BACKUP_DIR,
    CONFIG_SCHEMA_VERSION,
    DEFAULT_DAYS_UNTIL_ARCHIVE,
    DEFAULT_KEEP_ENTRIES,
    DEFAULT_LOG_RETENTION_DAYS,
    DEFAULT_MAX_COMPLETED_TASKS,
    DEFAULT_PRESERVE_RECENT_COUNT,
    DEFAULT_ROTATE_THRESHOLD_KB,
    DEFAULT_STALE_DAYS,
    LOG_FILE,
    TODO_FILE,
)
from todo_ledger.integrity.validator import ALWAYS_FATAL, DEFAULT_WARNING_KINDS, ViolationKind

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("paths", "todo_file"),
    ("paths", "archive_file"),
    ("paths", "log_file"),
    ("paths", "backup_dir"),
)

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS: Final[tuple[str, ...]] = ("json", "text")


class MetaConfig(TypedDict):
    schema_version: int


class PathsConfig(TypedDict):
    todo_file: str
    archive_file: str
    log_file: str
    backup_dir: str


class ArchiveConfig(TypedDict):
    days_until_archive: int
    max_completed_tasks: int
    preserve_recent_count: int
    archive_on_complete: bool


class AuditConfig(TypedDict):
    enabled: bool
    retention_days: int
    rotate_threshold_kb: int
    keep_entries: int


class ValidationConfig(TypedDict):
    strict: bool
    stale_days: int
    warning_kinds: list[str]
    abort_on_checksum_mismatch: bool


class PhasesConfig(TypedDict):
    auto_advance: bool


class BackupsConfig(TypedDict):
    enabled: bool
    max_backups: int


class ObservabilityConfig(TypedDict):
    log_level: str
    log_format: str
    log_file: str


class LedgerConfig(TypedDict):
    meta: MetaConfig
    paths: PathsConfig
    archive: ArchiveConfig
    audit: AuditConfig
    validation: ValidationConfig
    phases: PhasesConfig
    backups: BackupsConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[LedgerConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "paths": {
        "todo_file": str(TODO_FILE),
        "archive_file": str(ARCHIVE_FILE),
        "log_file": str(LOG_FILE),
        "backup_dir": str(BACKUP_DIR),
    },
    "archive": {
        "days_until_archive": DEFAULT_DAYS_UNTIL_ARCHIVE,
        "max_completed_tasks": DEFAULT_MAX_COMPLETED_TASKS,
        "preserve_recent_count": DEFAULT_PRESERVE_RECENT_COUNT,
        "archive_on_complete": False,
    },
    "audit": {
        "enabled": True,
        "retention_days": DEFAULT_LOG_RETENTION_DAYS,
        "rotate_threshold_kb": DEFAULT_ROTATE_THRESHOLD_KB,
        "keep_entries": DEFAULT_KEEP_ENTRIES,
    },
    "validation": {
        "strict": False,
        "stale_days": DEFAULT_STALE_DAYS,
        "warning_kinds": sorted(kind.value for kind in DEFAULT_WARNING_KINDS),
        "abort_on_checksum_mismatch": False,
    },
    "phases": {"auto_advance": False},
    "backups": {"enabled": True, "max_backups": 10},
    "observability": {"log_level": "WARNING", "log_format": "json", "log_file": ""},
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


_Validator = Callable[[Mapping[str, object], str, _IssueCollector], dict[str, Any]]


def default_config() -> LedgerConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade todo.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the todo-ledger package"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    sections: dict[str, _Validator] = {
        "meta": _validate_meta,
        "paths": _validate_paths,
        "archive": _validate_archive,
        "audit": _validate_audit,
        "validation": _validate_validation,
        "phases": _validate_phases,
        "backups": _validate_backups,
        "observability": _validate_observability,
    }
    _reject_unknown_keys(payload, set(sections), "", issues)
    _require_keys(payload, set(sections), "", issues)

    out: dict[str, Any] = {}
    for key in sorted(sections):
        raw = payload.get(key)
        if raw is None:
            continue
        section = _as_object(raw, key, issues)
        if section is None:
            continue
        out[key] = sections[key](section, key, issues)
    return out


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"schema_version"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(
            payload["schema_version"], _join(path, "schema_version"), issues, minimum=1
        )
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_paths(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"todo_file", "archive_file", "log_file", "backup_dir"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in sorted(allowed):
        if key in payload:
            parsed = _as_path_text(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    return out


def _validate_archive(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    integers = {"days_until_archive", "max_completed_tasks", "preserve_recent_count"}
    booleans = {"archive_on_complete"}
    return _validate_flat(payload, path, issues, integers=integers, booleans=booleans)


def _validate_audit(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    integers = {"retention_days", "rotate_threshold_kb", "keep_entries"}
    booleans = {"enabled"}
    return _validate_flat(payload, path, issues, integers=integers, booleans=booleans)


def _validate_validation(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"strict", "stale_days", "warning_kinds", "abort_on_checksum_mismatch"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    scalar_payload = {key: value for key, value in payload.items() if key != "warning_kinds"}
    out = _validate_flat(
        scalar_payload,
        path,
        issues,
        integers={"stale_days"},
        booleans={"strict", "abort_on_checksum_mismatch"},
        check_keys=False,
    )
    if "warning_kinds" in payload:
        parsed_kinds = _as_warning_kinds(
            payload["warning_kinds"], _join(path, "warning_kinds"), issues
        )
        if parsed_kinds is not None:
            out["warning_kinds"] = parsed_kinds
    return out


def _validate_phases(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    return _validate_flat(payload, path, issues, integers=set(), booleans={"auto_advance"})


def _validate_backups(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    return _validate_flat(payload, path, issues, integers={"max_backups"}, booleans={"enabled"})


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_format", "log_file"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        parsed_level = _as_enum(
            payload["log_level"], _join(path, "log_level"), issues, allowed_values=LOG_LEVELS
        )
        if parsed_level is not None:
            out["log_level"] = parsed_level

    if "log_format" in payload:
        parsed_format = _as_enum(
            payload["log_format"], _join(path, "log_format"), issues, allowed_values=LOG_FORMATS
        )
        if parsed_format is not None:
            out["log_format"] = parsed_format

    if "log_file" in payload:
        value = payload["log_file"]
        # Empty means stderr only.
        if isinstance(value, str) and not value.strip():
            out["log_file"] = ""
        else:
            parsed_file = _as_path_text(value, _join(path, "log_file"), issues)
            if parsed_file is not None:
                out["log_file"] = parsed_file
    return out


def _validate_flat(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    integers: set[str],
    booleans: set[str],
    check_keys: bool = True,
) -> dict[str, Any]:
    if check_keys:
        allowed = integers | booleans
        _reject_unknown_keys(payload, allowed, path, issues)
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in sorted(integers):
        if key in payload:
            parsed_int = _as_int(payload[key], _join(path, key), issues, minimum=0)
            if parsed_int is not None:
                out[key] = parsed_int
    for key in sorted(booleans):
        if key in payload:
            parsed_bool = _as_bool(payload[key], _join(path, key), issues)
            if parsed_bool is not None:
                out[key] = parsed_bool
    return out


def _as_warning_kinds(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected array of strings, got {type(value).__name__}")
        return None
    known = {kind.value for kind in ViolationKind}
    fatal = {kind.value for kind in ALWAYS_FATAL}
    parsed: list[str] = []
    failed = False
    for index, item in enumerate(value):
        item_path = f"{path}[{index}]"
        if not isinstance(item, str):
            issues.add(item_path, f"expected string, got {type(item).__name__}")
            failed = True
        elif item not in known:
            expected = ", ".join(sorted(known))
            issues.add(item_path, f"unknown violation kind {item!r}; expected one of: {expected}")
            failed = True
        elif item in fatal:
            issues.add(item_path, f"{item} is always an error and cannot be downgraded")
            failed = True
        elif item not in parsed:
            parsed.append(item)
    if failed:
        return None
    return sorted(parsed)


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: copy.deepcopy(value[key]) for key in sorted(value)}


__all__ = [
    "ArchiveConfig",
    "AuditConfig",
    "BackupsConfig",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "LOG_FORMATS",
    "LOG_LEVELS",
    "LedgerConfig",
    "MetaConfig",
    "ObservabilityConfig",
    "PATH_FIELDS",
    "PathsConfig",
    "PhasesConfig",
    "ValidationConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
