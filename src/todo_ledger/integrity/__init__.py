"""Checksum engine and document validator."""

from todo_ledger.integrity.checksum import (
    ChecksumStatus,
    checksum_status,
    compute_checksum,
    restamp,
    verify_checksum,
)
from todo_ledger.integrity.validator import (
    ALWAYS_FATAL,
    ALWAYS_WARNING,
    DEFAULT_WARNING_KINDS,
    Severity,
    ValidationReport,
    Violation,
    ViolationKind,
    apply_fixes,
    severity_for,
    validate,
)

__all__ = [
    "ALWAYS_FATAL",
    "ALWAYS_WARNING",
    "ChecksumStatus",
    "DEFAULT_WARNING_KINDS",
    "Severity",
    "ValidationReport",
    "Violation",
    "ViolationKind",
    "apply_fixes",
    "checksum_status",
    "compute_checksum",
    "restamp",
    "severity_for",
    "validate",
    "verify_checksum",
]
