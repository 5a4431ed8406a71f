"""Task progress aggregation. Always derived from the task list, never stored."""
from dataclasses import dataclass, field
from typing import Dict, Iterable, Sequence

from seshprep.models import TaskCategory, TaskStatus

PRODUCTION_PHASES = (
    TaskCategory.PRE_PRODUCTION.value,
    TaskCategory.RECORDING.value,
    TaskCategory.MIXING.value,
    TaskCategory.MASTERING.value,
)


@dataclass
class ProgressReport:
    total_tasks: int = 0
    completed_tasks: int = 0
    overall: float = 0.0
    phases: Dict[str, float] = field(default_factory=lambda: {phase: 0.0 for phase in PRODUCTION_PHASES})


def _value(raw) -> str:
    return raw.value if hasattr(raw, "value") else raw


def _percentage(completed: int, total: int) -> float:
    if total == 0:
        return 0.0
    return completed * 100.0 / total


def task_progress(tasks: Iterable) -> ProgressReport:
    """Overall and per-phase completion percentages for a project's tasks.

    A task counts towards a phase only when its category is that phase, so
    untagged and ``other`` tasks affect the overall figure alone.
    """
    total = completed = 0
    phase_totals = {phase: 0 for phase in PRODUCTION_PHASES}
    phase_completed = {phase: 0 for phase in PRODUCTION_PHASES}

    for task in tasks:
        is_done = _value(task.status) == TaskStatus.COMPLETED.value
        total += 1
        completed += is_done

        category = _value(task.category) if task.category is not None else None
        if category in phase_totals:
            phase_totals[category] += 1
            phase_completed[category] += is_done

    return ProgressReport(
        total_tasks=total,
        completed_tasks=completed,
        overall=_percentage(completed, total),
        phases={phase: _percentage(phase_completed[phase], phase_totals[phase]) for phase in PRODUCTION_PHASES},
    )


def average_progress(reports: Sequence[ProgressReport]) -> float:
    """Collection progress: mean of the member projects' overall progress."""
    if not reports:
        return 0.0
    return sum(report.overall for report in reports) / len(reports)
