"""Session state — the in-memory ledger of phase executions for one workflow run."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from d2c_workflow.models.session import (
    PhaseExecutionRecord,
    SessionSnapshot,
    SessionSummary,
)

logger = logging.getLogger(__name__)


class SessionState:
    """Append-only record of every phase evaluation since the session started.

    Memory-resident only. ``lock`` serializes evaluations so that concurrent
    callers can't interleave their read-decide-append sequences.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self._reset()

    def _reset(self) -> None:
        self.records: list[PhaseExecutionRecord] = []
        self.phases_executed: dict[int, bool] = {1: False, 2: False, 3: False}
        self.current_phase: Optional[int] = None
        self.started = False
        self.completed = False
        self.started_at: Optional[str] = None

    def append(self, record: PhaseExecutionRecord) -> None:
        with self.lock:
            if not self.started:
                self.started = True
                self.started_at = record.timestamp
            self.records.append(record)
            self.phases_executed[record.phase] = True
            self.current_phase = record.phase
        logger.debug("Recorded phase %d iteration %d: %.2f%%",
                     record.phase, record.iteration, record.success_rate)

    def rates_for_phase(self, phase: int) -> list[float]:
        with self.lock:
            return [r.success_rate for r in self.records if r.phase == phase]

    def snapshot(self) -> SessionSnapshot:
        with self.lock:
            return SessionSnapshot(
                records=list(self.records),
                phases_executed=dict(self.phases_executed),
                current_phase=self.current_phase,
                started=self.started,
                completed=self.completed,
                started_at=self.started_at,
            )

    def complete(self, notes: str = "") -> SessionSummary:
        """Summarize the session, then reset it to its initial empty state."""
        with self.lock:
            self.completed = True
            records = list(self.records)
            best: dict[int, float] = {}
            for r in records:
                best[r.phase] = max(best.get(r.phase, r.success_rate), r.success_rate)
            last = records[-1] if records else None
            summary = SessionSummary(
                records=records,
                total_executions=len(records),
                phases_executed=[p for p, ran in sorted(self.phases_executed.items()) if ran],
                final_phase=last.phase if last else None,
                final_success_rate=last.success_rate if last else None,
                best_rate_per_phase=best,
                notes=notes or "",
                started_at=self.started_at,
                completed_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
                completed=self.completed,
            )
            self._reset()
        logger.info("Session completed after %d phase executions", summary.total_executions)
        return summary


def format_session_summary(summary: SessionSummary) -> str:
    """Generate a human-readable session summary."""
    lines = [
        "Design-to-code session summary",
        f"  Executions: {summary.total_executions}",
    ]
    if summary.phases_executed:
        lines.append(f"  Phases run: {', '.join(str(p) for p in summary.phases_executed)}")
    for phase, rate in sorted(summary.best_rate_per_phase.items()):
        lines.append(f"  Phase {phase} best: {rate:.2f}%")
    if summary.final_phase is not None:
        lines.append(f"  Final: phase {summary.final_phase} at {summary.final_success_rate:.2f}%")
    if summary.notes:
        lines.append(f"  Notes: {summary.notes}")
    return "\n".join(lines)
