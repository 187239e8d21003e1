# src/leadforge/tests/test_tasks.py
"""
Unit tests for the background task tracker.

Tests cover:
- Starting builds and completing them in the background
- Rejecting a second build for a pair that is already building
- Pause, resume, cancel and dismiss
- Failed builds
- Restoring persisted tasks after a restart
- The floating widget summary
"""
import asyncio
import threading
import time
from datetime import datetime, timezone
import pytest

from leadforge.builder import ArtifactBuilder
from leadforge.errors import (
    BuildCancelledError,
    BuildInProgressError,
    InvalidTransitionError,
    LeadForgeError,
    TemplateAssemblyError,
)
from leadforge.models import AgentType, ArtifactType, BuildingTask, BusinessRecord, GeneratedArtifact, TaskStatus
from leadforge.storage import ArtifactHistoryStore, LocalStore, TaskStore
from leadforge.tasks import (
    CANCELLED_BY_USER,
    ESTIMATED_BUILD_SECONDS,
    STEP_CANCELLED,
    STEP_INTERRUPTED,
    STEP_PAUSED,
    BackgroundTaskTracker,
)


FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


async def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class BlockingBuilder:
    """Builder that reports 20% and then waits to be released or cancelled."""

    def __init__(self):
        self.release = threading.Event()
        self.calls = []

    def build(self, business, agent_type, api_key=None, on_progress=None, cancel_event=None, artifact_id=None):
        self.calls.append({"business_id": business.id, "api_key": api_key, "artifact_id": artifact_id})
        on_progress(20, "Connecting to AI service...")
        while not self.release.wait(0.01):
            if cancel_event.is_set():
                raise BuildCancelledError()
        return GeneratedArtifact(
            id=artifact_id,
            name=f"{business.name} - Website Builder",
            type=ArtifactType.WEBSITE,
            content="<html></html>",
        )


class FailingBuilder:
    def build(self, business, agent_type, **kwargs):
        raise TemplateAssemblyError("Template exploded")


@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path / "state")


@pytest.fixture
def task_store(store):
    return TaskStore(store)


@pytest.fixture
def business():
    return BusinessRecord(id="b1", name="Joe's Pizza", category="Restaurant", location="Austin, TX")


@pytest.fixture
def blocking():
    builder = BlockingBuilder()
    yield builder
    builder.release.set()


class TestStart:
    """Tests for starting and completing builds."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_build_completes(self, store, task_store, business):
        """Test a template build running to completion in the background."""
        history = ArtifactHistoryStore(store)
        tracker = BackgroundTaskTracker(ArtifactBuilder([], history), task_store)

        task = await tracker.start(business, AgentType.WEBSITE)
        assert task.status == TaskStatus.BUILDING
        assert task.estimated_completion is not None

        task = await tracker.wait(task.id)

        assert task.status == TaskStatus.COMPLETED
        assert task.progress == 100
        assert task.current_step == "Complete!"
        assert task.artifact.id == task.id
        assert task.artifact.metadata["generation_path"] == "template"
        assert task_store.get(task.id).status == TaskStatus.COMPLETED
        assert history.get_by_id(task.id) is not None
        assert tracker.is_running(task.id) is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_progress_recorded(self, task_store, business, blocking):
        """Test that builder checkpoints update the task."""
        tracker = BackgroundTaskTracker(blocking, task_store)
        task = await tracker.start(business, "website", api_key="sk-user")

        await wait_until(lambda: task.progress == 20)
        assert task.current_step == "Connecting to AI service..."
        assert blocking.calls[0]["api_key"] == "sk-user"

        blocking.release.set()
        await tracker.wait(task.id)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_same_pair_rejected_while_building(self, task_store, business, blocking):
        """Test that a second build for the same pair is refused."""
        tracker = BackgroundTaskTracker(blocking, task_store)
        task = await tracker.start(business, AgentType.WEBSITE)

        with pytest.raises(BuildInProgressError):
            await tracker.start(business, AgentType.WEBSITE)

        other = await tracker.start(business, AgentType.CONTENT)
        assert other.id != task.id

        blocking.release.set()
        await tracker.wait(task.id)
        await tracker.wait(other.id)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_finished_task_replaced(self, store, task_store, business):
        """Test that restarting a finished pair replaces the old task."""
        tracker = BackgroundTaskTracker(ArtifactBuilder([]), task_store)
        first = await tracker.start(business, AgentType.CONTENT)
        await tracker.wait(first.id)

        second = await tracker.start(business, AgentType.CONTENT)
        await tracker.wait(second.id)

        assert [t.id for t in tracker.list_tasks()] == [second.id]
        assert len(task_store.list()) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_build(self, task_store, business):
        """Test that a builder error marks the task failed."""
        tracker = BackgroundTaskTracker(FailingBuilder(), task_store)
        task = await tracker.start(business, AgentType.WEBSITE)
        task = await tracker.wait(task.id)

        assert task.status == TaskStatus.ERROR
        assert task.current_step == "Failed"
        assert task.error == "Template exploded"


class TestPauseResumeCancel:
    """Tests for task lifecycle operations."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pause_and_resume(self, task_store, business, blocking):
        """Test that a paused build restarts from zero under the same id."""
        tracker = BackgroundTaskTracker(blocking, task_store)
        task = await tracker.start(business, AgentType.WEBSITE)
        await wait_until(lambda: task.progress == 20)

        await tracker.pause(task.id)

        assert task.status == TaskStatus.PAUSED
        assert task.current_step == STEP_PAUSED
        assert tracker.is_running(task.id) is False
        assert task_store.get(task.id).status == TaskStatus.PAUSED

        resumed = await tracker.resume(task.id)
        assert resumed.id == task.id
        assert resumed.status == TaskStatus.BUILDING
        await wait_until(lambda: len(blocking.calls) == 2)

        blocking.release.set()
        task = await tracker.wait(task.id)
        assert task.status == TaskStatus.COMPLETED
        assert blocking.calls[1]["artifact_id"] == task.id

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancel(self, task_store, business, blocking):
        """Test that cancelling marks the task failed with the user reason."""
        tracker = BackgroundTaskTracker(blocking, task_store)
        task = await tracker.start(business, AgentType.WEBSITE)

        await tracker.cancel(task.id)

        assert task.status == TaskStatus.ERROR
        assert task.current_step == STEP_CANCELLED
        assert task.error == CANCELLED_BY_USER
        with pytest.raises(InvalidTransitionError):
            await tracker.resume(task.id)

        await tracker.dismiss(task.id)
        assert tracker.get(task.id) is None
        assert task_store.get(task.id) is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pause_requires_building(self, task_store, business):
        """Test that a completed task cannot be paused."""
        tracker = BackgroundTaskTracker(ArtifactBuilder([]), task_store)
        task = await tracker.start(business, AgentType.MARKETING)
        await tracker.wait(task.id)

        with pytest.raises(InvalidTransitionError):
            await tracker.pause(task.id)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_resume_requires_paused(self, task_store, business, blocking):
        """Test that only paused tasks can be resumed."""
        tracker = BackgroundTaskTracker(blocking, task_store)
        task = await tracker.start(business, AgentType.WEBSITE)

        with pytest.raises(InvalidTransitionError):
            await tracker.resume(task.id)

        blocking.release.set()
        await tracker.wait(task.id)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_dismiss_refuses_active_task(self, task_store, business, blocking):
        """Test that an active build cannot be dismissed."""
        tracker = BackgroundTaskTracker(blocking, task_store)
        task = await tracker.start(business, AgentType.WEBSITE)

        with pytest.raises(BuildInProgressError):
            await tracker.dismiss(task.id)

        blocking.release.set()
        await tracker.wait(task.id)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_task(self, task_store):
        """Test that operations on unknown ids raise KeyError."""
        tracker = BackgroundTaskTracker(ArtifactBuilder([]), task_store)
        with pytest.raises(KeyError):
            await tracker.pause("missing")


class TestRestore:
    """Tests for restoring persisted tasks."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_building_becomes_interrupted(self, task_store, business):
        """Test that a build left running by a previous process is paused."""
        stale = BuildingTask(id="100", business_id=business.id, business_name=business.name, agent_type=AgentType.WEBSITE)
        stale.transition_to(TaskStatus.BUILDING)
        stale.advance(60)
        task_store.upsert(stale)

        tracker = BackgroundTaskTracker(ArtifactBuilder([]), task_store)
        changed = await tracker.restore()

        task = tracker.get("100")
        assert [t.id for t in changed] == ["100"]
        assert task.status == TaskStatus.PAUSED
        assert task.current_step == STEP_INTERRUPTED
        assert task_store.get("100").status == TaskStatus.PAUSED

        with pytest.raises(LeadForgeError):
            await tracker.resume("100")

        await tracker.resume("100", business=business)
        task = await tracker.wait("100")
        assert task.status == TaskStatus.COMPLETED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_queued_started_when_business_known(self, task_store, business):
        """Test that queued tasks start only when their business is supplied."""
        task_store.upsert(BuildingTask(id="200", business_id=business.id, agent_type=AgentType.CONTENT))
        task_store.upsert(BuildingTask(id="201", business_id="unknown", agent_type=AgentType.CONTENT))

        tracker = BackgroundTaskTracker(ArtifactBuilder([]), task_store)
        changed = await tracker.restore({business.id: business})

        assert [t.id for t in changed] == ["200"]
        assert tracker.get("201").status == TaskStatus.QUEUED
        task = await tracker.wait("200")
        assert task.status == TaskStatus.COMPLETED


class TestWidgetState:
    """Tests for the floating widget summary."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_active_tasks_listed(self, task_store, business, blocking):
        """Test count, progress and remaining time of active builds."""
        tracker = BackgroundTaskTracker(blocking, task_store, clock=lambda: FIXED_NOW)
        task = await tracker.start(business, AgentType.WEBSITE)
        await wait_until(lambda: task.progress == 20)

        state = tracker.widget_state()

        assert state["count"] == 1
        item = state["tasks"][0]
        assert item["id"] == task.id
        assert item["business_name"] == "Joe's Pizza"
        assert item["agent_type"] == "website"
        assert item["progress"] == 20
        assert item["remaining_seconds"] == ESTIMATED_BUILD_SECONDS

        blocking.release.set()
        await tracker.wait(task.id)
        assert tracker.widget_state() == {"count": 0, "tasks": []}
