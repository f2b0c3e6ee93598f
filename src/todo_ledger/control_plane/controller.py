"""
todo-ledger — mutation controller

File: src/todo_ledger/control_plane/controller.py
Last updated: 2026-10-19

Purpose
- Sequence every state change through one cycle: load, certify (checksum + validator),
  apply the pure transition, restamp the checksum, write back, record an audit entry,
  then run the phase and archive post-passes through the same cycle.

Functional requirements
- Blocking violations abort with ``StructuralViolation`` before anything is written.
- A checksum mismatch is a logged warning unless ``abort_on_checksum_mismatch`` is set,
  in which case it raises ``IntegrityMismatch``.
- A tolerated mismatch is written to the audit log as ``checksum_updated`` (stored and
  computed values) ahead of the entry for the mutation that restamps it.
- Restoring a backup validates the snapshot before the live document is replaced.
- An unreadable audit log aborts before the document is touched.
- A post-pass failure never rolls back the mutation that triggered it.

Non-functional requirements
- Decision events are emitted through ``structlog``; the logger is injectable.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from todo_ledger.archive.engine import (
    ArchiveMode,
    ArchivePlan,
    ArchivePolicy,
    ArchiveResult,
    apply_archive,
    plan_archive,
)
from todo_ledger.audit.trail import AuditTrail
from todo_ledger.constants import (
    DEFAULT_KEEP_ENTRIES,
    DEFAULT_LOG_RETENTION_DAYS,
    DEFAULT_ROTATE_THRESHOLD_KB,
    DEFAULT_STALE_DAYS,
)
from todo_ledger.domain import ids
from todo_ledger.domain.errors import (
    IntegrityMismatch,
    MalformedInput,
    NotFound,
    PolicyAmbiguous,
    PreconditionFailed,
    StructuralViolation,
)
from todo_ledger.domain.events import Actor, AuditAction
from todo_ledger.domain.models import (
    ArchiveDocument,
    JSONValue,
    ProjectDocument,
    Task,
    TaskPriority,
    utc_now,
)
from todo_ledger.integrity.checksum import ChecksumStatus, checksum_status, restamp
from todo_ledger.integrity.validator import (
    DEFAULT_WARNING_KINDS,
    ValidationReport,
    Violation,
    ViolationKind,
    validate,
)
from todo_ledger.lifecycle import transitions
from todo_ledger.persistence.store import DEFAULT_MAX_BACKUPS, StorePaths, TodoStore
from todo_ledger.phases import heuristics
from todo_ledger.phases.heuristics import (
    PhaseSummary,
    assign_phase_to_new_task,
    auto_advance,
    detect_phase_completion,
    infer_current_phase,
    mark_phases_completed,
    phase_summaries,
    record_phase_started,
    reopen_phase_if_completed,
)

Clock = Callable[[], datetime]


@dataclass(frozen=True, slots=True)
class ControllerSettings:
    """Behavioural knobs, usually derived from the effective config."""

    strict: bool = False
    stale_days: int = DEFAULT_STALE_DAYS
    warning_kinds: frozenset[ViolationKind] = DEFAULT_WARNING_KINDS
    abort_on_checksum_mismatch: bool = False
    archive_policy: ArchivePolicy = field(default_factory=ArchivePolicy)
    archive_on_complete: bool = False
    auto_advance_phases: bool = False
    audit_enabled: bool = True
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS
    rotate_threshold_kb: int = DEFAULT_ROTATE_THRESHOLD_KB
    keep_entries: int = DEFAULT_KEEP_ENTRIES
    backups_enabled: bool = True
    max_backups: int = DEFAULT_MAX_BACKUPS

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> ControllerSettings:
        archive = config["archive"]
        audit = config["audit"]
        validation = config["validation"]
        backups = config["backups"]
        return cls(
            strict=validation["strict"],
            stale_days=validation["stale_days"],
            warning_kinds=frozenset(ViolationKind(kind) for kind in validation["warning_kinds"]),
            abort_on_checksum_mismatch=validation["abort_on_checksum_mismatch"],
            archive_policy=ArchivePolicy(
                days_until_archive=archive["days_until_archive"],
                max_completed_tasks=archive["max_completed_tasks"],
                preserve_recent_count=archive["preserve_recent_count"],
            ),
            archive_on_complete=archive["archive_on_complete"],
            auto_advance_phases=config["phases"]["auto_advance"],
            audit_enabled=audit["enabled"],
            retention_days=audit["retention_days"],
            rotate_threshold_kb=audit["rotate_threshold_kb"],
            keep_entries=audit["keep_entries"],
            backups_enabled=backups["enabled"],
            max_backups=backups["max_backups"],
        )


@dataclass(frozen=True, slots=True)
class MutationOutcome:
    """What one controller call committed, including post-pass effects."""

    document: ProjectDocument
    task: Task | None = None
    archived_ids: tuple[str, ...] = ()
    completed_phases: tuple[str, ...] = ()
    advanced_phase: str | None = None
    ambiguous_phases: tuple[str, ...] = ()
    warnings: tuple[Violation, ...] = ()
    notices: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "task": self.task.to_dict() if self.task is not None else None,
            "focus": self.document.focus.to_dict(),
            "checksum": self.document.meta.checksum,
            "archived": list(self.archived_ids),
            "completedPhases": list(self.completed_phases),
            "advancedPhase": self.advanced_phase,
            "ambiguousPhases": list(self.ambiguous_phases),
            "warnings": [item.to_dict() for item in self.warnings],
            "notices": list(self.notices),
        }


@dataclass(frozen=True, slots=True)
class _Certified:
    document: ProjectDocument
    archive: ArchiveDocument
    report: ValidationReport
    checksum: ChecksumStatus


class TodoController:
    """Owns the certify, apply, record cycle for one project root."""

    def __init__(
        self,
        store: TodoStore,
        trail: AuditTrail,
        *,
        settings: ControllerSettings | None = None,
        actor: Actor | str = Actor.HUMAN,
        clock: Clock = utc_now,
        logger: Any | None = None,
    ) -> None:
        self._store = store
        self._trail = trail
        self._settings = settings if settings is not None else ControllerSettings()
        self._actor = Actor(actor)
        self._clock = clock
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        root: str | Path,
        actor: Actor | str = Actor.HUMAN,
        clock: Clock = utc_now,
        logger: Any | None = None,
    ) -> TodoController:
        settings = ControllerSettings.from_config(config)
        paths = config["paths"]
        store = TodoStore(
            StorePaths.from_root(
                root,
                todo_file=paths["todo_file"],
                archive_file=paths["archive_file"],
                log_file=paths["log_file"],
                backup_dir=paths["backup_dir"],
            ),
            backups_enabled=settings.backups_enabled,
            max_backups=settings.max_backups,
        )
        trail = AuditTrail(
            store.paths.log_file,
            enabled=settings.audit_enabled,
            rotate_threshold_kb=settings.rotate_threshold_kb,
            keep_entries=settings.keep_entries,
            retention_days=settings.retention_days,
            clock=clock,
        )
        return cls(store, trail, settings=settings, actor=actor, clock=clock, logger=logger)

    @property
    def store(self) -> TodoStore:
        return self._store

    @property
    def trail(self) -> AuditTrail:
        return self._trail

    @property
    def settings(self) -> ControllerSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load(self) -> ProjectDocument:
        return self._store.load_project()

    def show_task(self, task_id: str) -> Task:
        return self._store.load_project().get_task(task_id)

    def run_validation(self, *, strict: bool | None = None, fix: bool = False) -> ValidationReport:
        """Validate the stored document; with ``fix`` the repaired document is written back."""
        document = self._store.load_project()
        archive = self._store.load_archive(project=document.project)
        now = self._clock()
        report = validate(
            document,
            strict=self._settings.strict if strict is None else strict,
            fix=fix,
            archive=archive,
            warning_kinds=self._settings.warning_kinds,
            stale_days=self._settings.stale_days,
            now=now,
        )
        self._logger.info(
            "todo_ledger_validation",
            errors=len(report.errors),
            warnings=len(report.warnings),
            fixed=len(report.fixed),
            strict=report.strict,
        )
        if report.fixed:
            self._trail.load()
            self._store.save_project(report.document)
            self._record(
                AuditAction.VALIDATION_RUN,
                report.document,
                details={
                    "fixed": list(report.fixed),
                    "errors": len(report.errors),
                    "warnings": len(report.warnings),
                },
            )
        return report

    def checksum(self, *, update: bool = False) -> ChecksumStatus:
        document = self._store.load_project()
        status = checksum_status(document)
        if update and not status.matches:
            self._trail.load()
            stamped = restamp(document, now=self._clock())
            self._store.save_project(stamped)
            self._record(
                AuditAction.CHECKSUM_UPDATED,
                stamped,
                before={"checksum": status.stored},
                after={"checksum": status.computed},
            )
            self._logger.warning(
                "todo_ledger_checksum_restamped", stored=status.stored, computed=status.computed
            )
        return status

    def current_phase(self) -> str:
        document = self._store.load_project()
        return document.focus.current_phase or infer_current_phase(document)

    def phases(self) -> tuple[PhaseSummary, ...]:
        return phase_summaries(self._store.load_project())

    # ------------------------------------------------------------------
    # Project / session
    # ------------------------------------------------------------------

    def init_project(self, project: str, *, force: bool = False) -> ProjectDocument:
        document = self._store.init_project(project, now=self._clock(), force=force)
        self._logger.info(
            "todo_ledger_initialized", project=project, path=str(self._store.paths.todo_file)
        )
        return document

    def start_session(self) -> MutationOutcome:
        certified = self._certify()
        active = certified.document.meta.active_session
        if active:
            raise PreconditionFailed(f"session {active} is already active; end it first")
        session_id = ids.generate_session_id(now=self._clock())
        updated = certified.document.with_meta(active_session=session_id)
        return self._commit(
            certified,
            updated,
            AuditAction.SESSION_START,
            details={"sessionId": session_id},
        )

    def end_session(self, *, note: str | None = None) -> MutationOutcome:
        certified = self._certify()
        active = certified.document.meta.active_session
        if not active:
            raise PreconditionFailed("no active session to end")
        updated = certified.document
        if note:
            updated = transitions.set_session_note(updated, note)
        updated = updated.with_meta(active_session=None)
        # The closing entry carries the session it closes.
        return self._commit(
            certified,
            updated,
            AuditAction.SESSION_END,
            details={"sessionId": active},
            session_id=active,
        )

    # ------------------------------------------------------------------
    # Task lifecycle
    # ------------------------------------------------------------------

    def add_task(
        self,
        title: str,
        *,
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        phase: str | None = None,
        description: str | None = None,
        depends: Sequence[str] = (),
        labels: Sequence[str] = (),
        files: Sequence[str] = (),
        acceptance: Sequence[str] = (),
    ) -> MutationOutcome:
        certified = self._certify()
        now = self._clock()
        before = certified.document
        updated, task = transitions.add_task(
            before,
            title,
            reserved_ids=certified.archive.archived_ids(),
            priority=TaskPriority(priority),
            phase=phase,
            description=description,
            depends=depends,
            labels=labels,
            files=files,
            acceptance=acceptance,
            now=now,
        )
        inherited = assign_phase_to_new_task(task, before)
        if inherited and inherited != task.phase:
            task = replace(task, phase=inherited)
            updated = updated.with_task(task)
        updated = reopen_phase_if_completed(updated, task.phase, now=now)

        outcome = self._commit(
            certified,
            updated,
            AuditAction.TASK_CREATED,
            task_id=task.id,
            after=task.to_dict(),
            task=task,
        )
        if task.phase and not phase:
            self._record(
                AuditAction.PHASE_INHERITED,
                outcome.document,
                task_id=task.id,
                details={"phase": task.phase},
            )
        return outcome

    def start_task(self, task_id: str) -> MutationOutcome:
        certified = self._certify()
        updated = transitions.start_task(
            certified.document, task_id, archived_ids=certified.archive.archived_ids()
        )
        return self._commit_status(certified, updated, task_id)

    def complete_task(self, task_id: str, *, archive: bool | None = None) -> MutationOutcome:
        """
        Mark ``task_id`` done, then run the phase and (optionally) archive post-passes.

        ``archive=None`` defers to ``archive.archive_on_complete``.
        Completing a task that is already done changes nothing and returns a notice.
        """
        certified = self._certify()
        if certified.document.get_task(task_id).is_done:
            self._logger.warning("todo_ledger_already_done", task_id=task_id)
            return MutationOutcome(
                document=certified.document,
                task=certified.document.get_task(task_id),
                warnings=certified.report.warnings,
                notices=(f"{task_id} is already done; nothing changed",),
            )
        now = self._clock()
        updated = transitions.complete_task(
            certified.document, task_id, now, strict=self._settings.strict
        )
        outcome = self._commit_status(certified, updated, task_id)
        outcome = self._phase_pass(outcome, (task_id,))

        run_archive = self._settings.archive_on_complete if archive is None else archive
        if run_archive:
            result = self._archive_pass(ArchiveMode.POLICY)
            if result.archived_ids:
                outcome = replace(
                    outcome, document=result.document, archived_ids=result.archived_ids
                )
        return outcome

    def block_task(self, task_id: str, reason: str) -> MutationOutcome:
        certified = self._certify()
        updated = transitions.block_task(certified.document, task_id, reason)
        return self._commit_status(certified, updated, task_id)

    def unblock_task(self, task_id: str) -> MutationOutcome:
        certified = self._certify()
        updated = transitions.unblock_task(certified.document, task_id)
        return self._commit_status(certified, updated, task_id)

    def reopen_task(self, task_id: str, *, reason: str | None = None) -> MutationOutcome:
        certified = self._certify()
        now = self._clock()
        updated = transitions.reopen_task(certified.document, task_id, reason=reason, now=now)
        updated = reopen_phase_if_completed(updated, updated.get_task(task_id).phase, now=now)
        return self._commit_status(certified, updated, task_id)

    def add_note(self, task_id: str, text: str) -> MutationOutcome:
        certified = self._certify()
        updated = transitions.add_note(certified.document, task_id, text, now=self._clock())
        task = updated.get_task(task_id)
        return self._commit(
            certified,
            updated,
            AuditAction.TASK_UPDATED,
            task_id=task_id,
            before={"notes": list(certified.document.get_task(task_id).notes)},
            after={"notes": list(task.notes)},
            task=task,
        )

    # ------------------------------------------------------------------
    # Focus
    # ------------------------------------------------------------------

    def set_focus(self, task_id: str) -> MutationOutcome:
        certified = self._certify()
        updated = transitions.set_focus(
            certified.document, task_id, archived_ids=certified.archive.archived_ids()
        )
        return self._commit_focus(certified, updated, task_id=task_id)

    def clear_focus(self) -> MutationOutcome:
        certified = self._certify()
        return self._commit_focus(certified, transitions.clear_focus(certified.document))

    def set_session_note(self, note: str | None) -> MutationOutcome:
        certified = self._certify()
        return self._commit_focus(certified, transitions.set_session_note(certified.document, note))

    def set_next_action(self, action: str | None) -> MutationOutcome:
        certified = self._certify()
        updated = transitions.set_next_action(certified.document, action)
        return self._commit_focus(certified, updated)

    # ------------------------------------------------------------------
    # Archive / phases
    # ------------------------------------------------------------------

    def plan_archive(self, mode: ArchiveMode = ArchiveMode.POLICY) -> ArchivePlan:
        certified = self._certify()
        return plan_archive(certified.document, self._policy(mode), now=self._clock())

    def archive(self, mode: ArchiveMode = ArchiveMode.POLICY) -> ArchiveResult:
        return self._archive_pass(mode)

    def check_phase_completion(self) -> MutationOutcome:
        """Record every fully-done phase not yet marked completed."""
        certified = self._certify()
        outcome = MutationOutcome(document=certified.document, warnings=certified.report.warnings)
        return self._phase_pass(outcome, certified.document.task_ids())

    def set_phase(self, phase: str) -> MutationOutcome:
        """Point ``focus.currentPhase`` at ``phase``; phase history is untouched."""
        certified = self._certify()
        updated = heuristics.set_current_phase(certified.document, phase)
        return self._commit_phase(
            certified,
            updated,
            AuditAction.PHASE_CHANGED,
            details={"phase": updated.focus.current_phase},
        )

    def start_phase(self, phase: str) -> MutationOutcome:
        certified = self._certify()
        updated = heuristics.start_phase(certified.document, phase, now=self._clock())
        return self._commit_phase(
            certified,
            updated,
            AuditAction.PHASE_STARTED,
            details={"phase": updated.focus.current_phase},
        )

    def complete_phase(self, phase: str) -> MutationOutcome:
        certified = self._certify()
        updated = heuristics.complete_phase(certified.document, phase, now=self._clock())
        label = phase.strip()
        outcome = self._commit_phase(
            certified, updated, AuditAction.PHASE_COMPLETED, details={"phases": [label]}
        )
        return replace(outcome, completed_phases=(label,))

    def advance_phase(self) -> MutationOutcome:
        """Complete the current phase (unless already recorded) and start the next one."""
        certified = self._certify()
        updated, left, entered = heuristics.advance_phase(certified.document, now=self._clock())
        started = {"phase": entered, "from": left}
        if heuristics.is_phase_marked_completed(certified.document, left):
            outcome = self._commit_phase(
                certified, updated, AuditAction.PHASE_STARTED, details=started
            )
        else:
            outcome = self._commit_phase(
                certified, updated, AuditAction.PHASE_COMPLETED, details={"phases": [left]}
            )
            self._record(AuditAction.PHASE_STARTED, outcome.document, details=started)
            outcome = replace(outcome, completed_phases=(left,))
        return replace(outcome, advanced_phase=entered)

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def list_backups(self) -> tuple[Path, ...]:
        return self._store.list_backups()

    def restore_backup(self, name: str) -> MutationOutcome:
        """
        Replace the live document with the snapshot ``name``.

        The live document may be missing or unreadable; the snapshot must parse and
        pass validation against the archive before anything is written.
        """
        try:
            previous: str | None = self._store.load_project().meta.checksum
        except (NotFound, MalformedInput):
            previous = None
        self._trail.load()
        restored = self._store.restore_backup(name, check=self._check_restorable)
        self._record(
            AuditAction.BACKUP_RESTORED,
            restored,
            before={"checksum": previous},
            after={"checksum": restored.meta.checksum},
            details={"backup": name},
        )
        self._logger.warning(
            "todo_ledger_backup_restored", backup=name, checksum=restored.meta.checksum
        )
        return MutationOutcome(document=restored)

    # ------------------------------------------------------------------
    # Cycle internals
    # ------------------------------------------------------------------

    def _certify(self) -> _Certified:
        document = self._store.load_project()
        archive = self._store.load_archive(project=document.project)
        status = checksum_status(document)
        if not status.matches:
            self._logger.warning(
                "todo_ledger_checksum_mismatch",
                stored=status.stored,
                computed=status.computed,
                abort=self._settings.abort_on_checksum_mismatch,
            )
            if self._settings.abort_on_checksum_mismatch:
                raise IntegrityMismatch(status.stored, status.computed)

        report = validate(
            document,
            strict=self._settings.strict,
            archive=archive,
            warning_kinds=self._settings.warning_kinds,
            stale_days=self._settings.stale_days,
            now=self._clock(),
        )
        if report.errors:
            self._logger.error(
                "todo_ledger_certification_failed",
                violations=[item.kind.value for item in report.errors],
            )
            raise StructuralViolation(report.errors)
        # Fail on an unreadable audit log before anything is written.
        self._trail.load()
        return _Certified(document=document, archive=archive, report=report, checksum=status)

    def _commit(
        self,
        certified: _Certified,
        updated: ProjectDocument,
        action: AuditAction,
        *,
        task_id: str | None = None,
        before: object = None,
        after: object = None,
        details: object = None,
        task: Task | None = None,
        session_id: str | None = None,
    ) -> MutationOutcome:
        now = self._clock()
        stamped = restamp(updated, now=now)
        self._assert_invariants(stamped, certified.archive)
        self._record_checksum_drift(certified)
        self._store.save_project(stamped)
        self._record(
            action,
            stamped,
            task_id=task_id,
            before=before,
            after=after,
            details=details,
            session_id=session_id,
        )
        self._logger.info(
            "todo_ledger_mutation",
            action=action.value,
            task_id=task_id,
            checksum=stamped.meta.checksum,
        )
        return MutationOutcome(document=stamped, task=task, warnings=certified.report.warnings)

    def _commit_status(
        self, certified: _Certified, updated: ProjectDocument, task_id: str
    ) -> MutationOutcome:
        previous = certified.document.get_task(task_id)
        current = updated.get_task(task_id)
        outcome = self._commit(
            certified,
            updated,
            AuditAction.STATUS_CHANGED,
            task_id=task_id,
            before={"status": previous.status.value},
            after={"status": current.status.value},
            task=current,
        )
        if certified.document.focus.current_task != outcome.document.focus.current_task:
            self._record(
                AuditAction.FOCUS_CHANGED,
                outcome.document,
                task_id=task_id,
                before={"currentTask": certified.document.focus.current_task},
                after={"currentTask": outcome.document.focus.current_task},
            )
        return outcome

    def _commit_focus(
        self,
        certified: _Certified,
        updated: ProjectDocument,
        *,
        task_id: str | None = None,
    ) -> MutationOutcome:
        return self._commit(
            certified,
            updated,
            AuditAction.FOCUS_CHANGED,
            task_id=task_id,
            before=certified.document.focus.to_dict(),
            after=updated.focus.to_dict(),
            task=updated.find_task(task_id) if task_id else None,
        )

    def _commit_phase(
        self,
        certified: _Certified,
        updated: ProjectDocument,
        action: AuditAction,
        *,
        details: object,
    ) -> MutationOutcome:
        return self._commit(
            certified,
            updated,
            action,
            before={"currentPhase": certified.document.focus.current_phase},
            after={"currentPhase": updated.focus.current_phase},
            details=details,
        )

    def _phase_pass(
        self, outcome: MutationOutcome, touched_ids: Iterable[str]
    ) -> MutationOutcome:
        completed = detect_phase_completion(outcome.document, touched_ids)
        if not completed:
            return outcome

        certified = self._certify()
        now = self._clock()
        marked = mark_phases_completed(certified.document, completed, now=now)
        result = self._commit(
            certified,
            marked,
            AuditAction.PHASE_COMPLETED,
            details={"phases": list(completed)},
        )
        outcome = replace(outcome, document=result.document, completed_phases=completed)

        try:
            next_phase = auto_advance(
                result.document, completed, enabled=self._settings.auto_advance_phases
            )
        except PolicyAmbiguous as exc:
            self._logger.warning(
                "todo_ledger_phase_advance_ambiguous", candidates=list(exc.candidates)
            )
            return replace(outcome, ambiguous_phases=exc.candidates)
        if next_phase is None:
            return outcome

        certified = self._certify()
        advanced = record_phase_started(
            certified.document,
            next_phase,
            from_phase=completed[0],
            reason="auto-advance",
            now=self._clock(),
        )
        result = self._commit(
            certified,
            advanced,
            AuditAction.PHASE_AUTO_ADVANCED,
            details={"from": completed[0], "to": next_phase},
        )
        return replace(outcome, document=result.document, advanced_phase=next_phase)

    def _archive_pass(self, mode: ArchiveMode) -> ArchiveResult:
        certified = self._certify()
        now = self._clock()
        result = apply_archive(
            certified.document,
            certified.archive,
            self._policy(mode),
            now=now,
            session_id=certified.document.meta.active_session,
        )
        if not result.archived_ids:
            return result

        self._assert_invariants(result.document, result.archive)
        self._record_checksum_drift(certified)
        self._store.save_archive_batch(result.document, result.archive)
        self._record(
            AuditAction.TASK_ARCHIVED,
            result.document,
            details={
                "count": len(result.archived_ids),
                "taskIds": list(result.archived_ids),
                "mode": mode.value,
            },
        )
        self._logger.info(
            "todo_ledger_archived",
            mode=mode.value,
            task_ids=list(result.archived_ids),
            checksum=result.document.meta.checksum,
        )
        return result

    def _assert_invariants(self, document: ProjectDocument, archive: ArchiveDocument) -> None:
        """Post-mutation check of the core invariants at default severities."""
        report = validate(
            document,
            archive=archive,
            warning_kinds=self._settings.warning_kinds,
            stale_days=0,
            now=self._clock(),
        )
        if report.errors:
            self._logger.error(
                "todo_ledger_mutation_rejected",
                violations=[item.kind.value for item in report.errors],
            )
            raise StructuralViolation(report.errors)

    def _record_checksum_drift(self, certified: _Certified) -> None:
        """Keep the stored/computed pair of an outside edit before a commit restamps it."""
        status = certified.checksum
        if status.matches:
            return
        self._record(
            AuditAction.CHECKSUM_UPDATED,
            certified.document,
            before={"checksum": status.stored},
            after={"checksum": status.computed},
            details={"reason": "checksum mismatch found before a mutation"},
        )

    def _check_restorable(self, document: ProjectDocument) -> None:
        archive = self._store.load_archive(project=document.project)
        status = checksum_status(document)
        if not status.matches and self._settings.abort_on_checksum_mismatch:
            raise IntegrityMismatch(status.stored, status.computed)
        report = validate(
            document,
            strict=self._settings.strict,
            archive=archive,
            warning_kinds=self._settings.warning_kinds,
            stale_days=self._settings.stale_days,
            now=self._clock(),
        )
        if report.errors:
            self._logger.error(
                "todo_ledger_restore_rejected",
                violations=[item.kind.value for item in report.errors],
            )
            raise StructuralViolation(report.errors)

    def _policy(self, mode: ArchiveMode) -> ArchivePolicy:
        return replace(self._settings.archive_policy, mode=mode)

    def _record(
        self,
        action: AuditAction,
        document: ProjectDocument,
        *,
        task_id: str | None = None,
        before: object = None,
        after: object = None,
        details: object = None,
        session_id: str | None = None,
    ) -> None:
        self._trail.append(
            action,
            actor=self._actor,
            task_id=task_id,
            session_id=session_id or document.meta.active_session,
            before=before,
            after=after,
            details=details,
        )


__all__ = ["Clock", "ControllerSettings", "MutationOutcome", "TodoController"]
