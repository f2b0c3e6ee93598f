"""Phase inference, completion detection, auto-advance and manual phase control."""

from todo_ledger.phases.heuristics import (
    PhaseSummary,
    advance_phase,
    assign_phase_to_new_task,
    auto_advance,
    complete_phase,
    detect_phase_completion,
    infer_current_phase,
    is_phase_marked_completed,
    latest_transition,
    mark_phases_completed,
    next_phase_after,
    phase_summaries,
    record_phase_started,
    reopen_phase_if_completed,
    set_current_phase,
    start_phase,
)

__all__ = [
    "PhaseSummary",
    "advance_phase",
    "assign_phase_to_new_task",
    "auto_advance",
    "complete_phase",
    "detect_phase_completion",
    "infer_current_phase",
    "is_phase_marked_completed",
    "latest_transition",
    "mark_phases_completed",
    "next_phase_after",
    "phase_summaries",
    "record_phase_started",
    "reopen_phase_if_completed",
    "set_current_phase",
    "start_phase",
]
