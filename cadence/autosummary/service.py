"""Auto-summarisation service - closes out sessions left paused too long."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from loguru import logger

from cadence.agent.summary import SummaryGenerationService
from cadence.providers.base import ModelClientError
from cadence.session.errors import CadenceError, SessionChangedError
from cadence.session.lifecycle import SessionLifecycleManager
from cadence.session.models import Session, SessionCompletionStatus, SessionStatus, utcnow
from cadence.session.state_machine import DEFAULT_AUTO_SUMMARY_TIMEOUT

DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE_S = 2.0


@dataclass
class AutoSummaryReport:
    """Outcome of one pass, by session id."""
    summarised: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.summarised) + len(self.pending)


class AutoSummarisationService:
    """
    Summarises abandoned sessions on demand.

    The host decides when to call ``run_pass`` (app launch, a scheduler);
    the service owns no timer. Each eligible session gets up to
    ``max_retries`` attempts; a session that still fails is parked in
    ``pending_auto_summary`` and retried on later passes.
    """

    def __init__(
        self,
        lifecycle: SessionLifecycleManager,
        summaries: SummaryGenerationService,
        timeout: timedelta = DEFAULT_AUTO_SUMMARY_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base_s: float = DEFAULT_BACKOFF_BASE_S,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.lifecycle = lifecycle
        self.summaries = summaries
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_base_s = backoff_base_s
        self.clock = clock

    @property
    def store(self):
        return self.lifecycle.store

    async def run_pass(self) -> AutoSummaryReport:
        """Process every eligible session once. No eligible sessions, no writes."""
        report = AutoSummaryReport()
        cutoff = self.clock() - self.timeout

        stale = await self.store.sessions_pending_summarisation(cutoff)
        pending = await self.store.sessions_with_status(SessionStatus.PENDING_AUTO_SUMMARY)

        eligible = list({s.id: s for s in stale + pending}.values())
        if not eligible:
            logger.debug("Auto-summary: nothing to do")
            return report

        logger.info(f"Auto-summary: {len(eligible)} session(s) eligible")
        for session in eligible:
            await self._process(session, cutoff, report)

        logger.info(
            f"Auto-summary pass done: {len(report.summarised)} summarised, "
            f"{len(report.pending)} pending, {len(report.skipped)} skipped"
        )
        return report

    # ── internal helpers ────────────────────────────────────────

    async def _process(self, scanned: Session, cutoff: datetime, report: AutoSummaryReport) -> None:
        # Re-read: the user may have resumed the session since the scan
        session = await self._recheck(scanned.id, cutoff)
        if session is None:
            report.skipped.append(scanned.id)
            return

        for attempt in range(self.max_retries):
            if attempt and self.backoff_base_s > 0:
                await asyncio.sleep(self.backoff_base_s * 2 ** (attempt - 1))
            if attempt and not await self._recheck(session.id, cutoff):
                report.skipped.append(session.id)
                return
            try:
                await self.summaries.generate_summary(
                    session.id, SessionCompletionStatus.INCOMPLETE_AUTO_SUMMARISED
                )
            except SessionChangedError as e:
                logger.info(f"Auto-summary: skipping session {session.id}: {e}")
                report.skipped.append(session.id)
                return
            except (CadenceError, ModelClientError) as e:
                logger.error(
                    f"Auto-summary attempt {attempt + 1}/{self.max_retries} "
                    f"failed for session {session.id}: {e}"
                )
                continue

            await self.lifecycle.transition_session(session.id, SessionStatus.AUTO_SUMMARISED)
            report.summarised.append(session.id)
            return

        current = await self._recheck(session.id, cutoff)
        if current is None:
            report.skipped.append(session.id)
            return
        if current.status != SessionStatus.PENDING_AUTO_SUMMARY:
            await self.lifecycle.transition_session(session.id, SessionStatus.PENDING_AUTO_SUMMARY)
            logger.warning(f"Session {session.id} parked as pending auto-summary")
        report.pending.append(session.id)

    async def _recheck(self, session_id: str, cutoff: datetime) -> Session | None:
        """The current session if it is still eligible, else None."""
        session = await self.store.get_session(session_id)
        if session is None or not self._still_eligible(session, cutoff):
            logger.info(f"Auto-summary: session {session_id} no longer eligible")
            return None
        return session

    @staticmethod
    def _still_eligible(session: Session, cutoff: datetime) -> bool:
        if session.status == SessionStatus.PENDING_AUTO_SUMMARY:
            return True
        return session.status == SessionStatus.PAUSED and session.last_active_at <= cutoff
