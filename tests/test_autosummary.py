"""Tests for the auto-summarisation service."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from cadence.agent.composer import PromptComposer
from cadence.agent.summary import SummaryGenerationService
from cadence.autosummary.service import AutoSummarisationService, AutoSummaryReport
from cadence.prompts.templates import PromptTemplateStore
from cadence.providers.base import ModelResponse, OverloadedError
from cadence.session.lifecycle import SessionLifecycleManager
from cadence.session.models import (
    ChatRole,
    SessionCompletionStatus,
    SessionMode,
    SessionStatus,
)
from cadence.session.store import InMemorySessionStore

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

SUMMARY_JSON = json.dumps({
    "contentEstablished": {"decisions": [], "factsLearned": ["Shed is 3x2m"], "progressMade": []},
    "contentObserved": {},
    "whatComesNext": {"nextActions": [], "openQuestions": ["Which roof?"], "suggestedMode": "planning"},
})


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        now = self.now
        self.now += timedelta(seconds=1)
        return now


def _make_service(max_retries: int = 3):
    store = InMemorySessionStore()
    clock = FakeClock()
    lifecycle = SessionLifecycleManager(store, clock=clock)
    client = MagicMock()
    client.send = AsyncMock(return_value=ModelResponse(content=SUMMARY_JSON))
    summaries = SummaryGenerationService(store, client, PromptComposer(PromptTemplateStore()))
    service = AutoSummarisationService(
        lifecycle, summaries, max_retries=max_retries, backoff_base_s=0, clock=clock
    )
    return service, lifecycle, store, client, clock


async def _paused_session(lifecycle: SessionLifecycleManager, project_id: str = "p1", messages: bool = True):
    session = await lifecycle.start_session(project_id, SessionMode.EXPLORATION)
    if messages:
        await lifecycle.add_message(session.id, ChatRole.USER, "I want to build a shed")
        await lifecycle.add_message(session.id, ChatRole.ASSISTANT, "How big?")
    return await lifecycle.transition_session(session.id, SessionStatus.PAUSED)


class TestReport:
    def test_processed_counts(self):
        report = AutoSummaryReport(summarised=["a"], pending=["b", "c"], skipped=["d"])
        assert report.processed == 3


class TestRunPass:
    @pytest.mark.asyncio
    async def test_nothing_eligible_writes_nothing(self):
        service, lifecycle, store, client, clock = _make_service()
        await _paused_session(lifecycle)
        clock.now += timedelta(hours=23)
        writes = store.writes

        report = await service.run_pass()

        assert report == AutoSummaryReport()
        assert store.writes == writes
        client.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_session_summarised(self):
        service, lifecycle, store, client, clock = _make_service()
        session = await _paused_session(lifecycle)
        clock.now += timedelta(hours=25)

        report = await service.run_pass()

        assert report.summarised == [session.id]
        closed = await store.get_session(session.id)
        assert closed.status == SessionStatus.AUTO_SUMMARISED
        assert closed.completed_at is not None
        summary = await store.get_summary(session.id)
        assert summary.completion_status == SessionCompletionStatus.INCOMPLETE_AUTO_SUMMARISED
        assert summary.what_comes_next.open_questions == ["Which roof?"]
        assert closed.summary_id == summary.id

    @pytest.mark.asyncio
    async def test_active_and_completed_sessions_ignored(self):
        service, lifecycle, store, client, clock = _make_service()
        active = await lifecycle.start_session("p1", SessionMode.PLANNING)
        done = await lifecycle.start_session("p2", SessionMode.PLANNING)
        await lifecycle.transition_session(done.id, SessionStatus.COMPLETED)
        clock.now += timedelta(days=3)

        report = await service.run_pass()

        assert report.processed == 0
        assert (await store.get_session(active.id)).status == SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_failures_park_session_as_pending(self):
        service, lifecycle, store, client, clock = _make_service(max_retries=3)
        client.send.side_effect = OverloadedError("busy")
        session = await _paused_session(lifecycle)
        clock.now += timedelta(hours=25)

        report = await service.run_pass()

        assert client.send.call_count == 3
        assert report.pending == [session.id]
        assert (await store.get_session(session.id)).status == SessionStatus.PENDING_AUTO_SUMMARY
        assert await store.get_summary(session.id) is None

    @pytest.mark.asyncio
    async def test_pending_session_retried_next_pass(self):
        service, lifecycle, store, client, clock = _make_service(max_retries=2)
        client.send.side_effect = OverloadedError("busy")
        session = await _paused_session(lifecycle)
        clock.now += timedelta(hours=25)
        await service.run_pass()

        # Still failing: stays pending without another transition
        report = await service.run_pass()
        assert report.pending == [session.id]
        assert client.send.call_count == 4
        assert (await store.get_session(session.id)).status == SessionStatus.PENDING_AUTO_SUMMARY

        client.send.side_effect = None
        report = await service.run_pass()
        assert report.summarised == [session.id]
        assert (await store.get_session(session.id)).status == SessionStatus.AUTO_SUMMARISED

    @pytest.mark.asyncio
    async def test_recovers_within_retries(self):
        service, lifecycle, store, client, clock = _make_service(max_retries=3)
        client.send.side_effect = [OverloadedError("busy"), ModelResponse(content=SUMMARY_JSON)]
        session = await _paused_session(lifecycle)
        clock.now += timedelta(hours=25)

        report = await service.run_pass()

        assert report.summarised == [session.id]
        assert client.send.call_count == 2

    @pytest.mark.asyncio
    async def test_session_without_messages_goes_pending(self):
        service, lifecycle, store, client, clock = _make_service(max_retries=2)
        session = await _paused_session(lifecycle, messages=False)
        clock.now += timedelta(hours=25)

        report = await service.run_pass()

        assert report.pending == [session.id]
        client.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_session_resumed_after_scan_is_skipped(self):
        service, lifecycle, store, client, clock = _make_service()
        session = await _paused_session(lifecycle)
        clock.now += timedelta(hours=25)
        stale = await store.sessions_pending_summarisation(clock.now)

        await lifecycle.resume_session(session.id)
        store.sessions_pending_summarisation = AsyncMock(return_value=stale)

        report = await service.run_pass()

        assert report.skipped == [session.id]
        client.send.assert_not_called()
        assert (await store.get_session(session.id)).status == SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self):
        service, lifecycle, store, client, clock = _make_service(max_retries=1)
        empty = await _paused_session(lifecycle, "p1", messages=False)
        good = await _paused_session(lifecycle, "p2")
        clock.now += timedelta(hours=25)

        report = await service.run_pass()

        assert report.pending == [empty.id]
        assert report.summarised == [good.id]

    @pytest.mark.asyncio
    async def test_resume_during_model_call_keeps_session_open(self):
        service, lifecycle, store, client, clock = _make_service()
        session = await _paused_session(lifecycle)
        clock.now += timedelta(hours=48)

        async def resume_then_reply(*args):
            await lifecycle.resume_session(session.id)
            return ModelResponse(content=SUMMARY_JSON)

        client.send = AsyncMock(side_effect=resume_then_reply)

        report = await service.run_pass()

        assert report.skipped == [session.id]
        assert report.summarised == []
        current = await store.get_session(session.id)
        assert current.status == SessionStatus.ACTIVE
        assert current.summary_id is None
        assert await store.get_summary(session.id) is None
        assert client.send.call_count == 1

    @pytest.mark.asyncio
    async def test_resume_during_failing_attempts_is_not_parked(self):
        service, lifecycle, store, client, clock = _make_service(max_retries=2)
        session = await _paused_session(lifecycle)
        clock.now += timedelta(hours=25)

        async def resume_then_fail(*args):
            current = await store.get_session(session.id)
            if current.status == SessionStatus.PAUSED:
                await lifecycle.resume_session(session.id)
            raise OverloadedError("busy")

        client.send = AsyncMock(side_effect=resume_then_fail)

        report = await service.run_pass()

        assert report.skipped == [session.id]
        assert client.send.call_count == 1
        assert report.pending == []
        assert (await store.get_session(session.id)).status == SessionStatus.ACTIVE
