"""Background build tracking.

Builds run as asyncio tasks that hand the blocking ArtifactBuilder call to
an executor thread. Each run owns a threading.Event; pausing or cancelling
sets it so the builder stops at its next checkpoint, and any progress the
abandoned thread still reports is ignored.

Every state change is written through to the TaskStore so a restarted
process can pick up where it left off.
"""

import asyncio
import functools
import threading
from concurrent.futures import Executor
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from .builder import ArtifactBuilder
from .errors import (
    BuildCancelledError,
    BuildInProgressError,
    ErrorCategory,
    InvalidTransitionError,
    LeadForgeError,
    StorageError,
    handle_error,
)
from .logging_utils import ContextAdapter, get_logger
from .models import AgentType, BuildingTask, BusinessRecord, TaskStatus, utcnow
from .storage import TaskStore

ESTIMATED_BUILD_SECONDS = 180

STEP_INITIALIZING = "Initializing..."
STEP_PAUSED = "Paused"
STEP_INTERRUPTED = "Interrupted"
STEP_CANCELLED = "Cancelled"
STEP_FAILED = "Failed"
STEP_COMPLETE = "Complete!"
CANCELLED_BY_USER = "Cancelled by user"

_IN_PROGRESS = (TaskStatus.QUEUED, TaskStatus.BUILDING)


class BackgroundTaskTracker:
    """Runs artifact builds in the background and tracks their lifecycle.

    Example:
        >>> tracker = BackgroundTaskTracker(builder, TaskStore(store))
        >>> task = await tracker.start(business, AgentType.WEBSITE)
        >>> task = await tracker.wait(task.id)
        >>> task.status
        <TaskStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        builder: ArtifactBuilder,
        task_store: TaskStore,
        executor: Optional[Executor] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the tracker.

        Args:
            builder: Builder that produces the artifacts.
            task_store: Durable task persistence.
            executor: Executor for blocking builds. None uses the loop default.
            clock: Source of the current time, replaceable in tests.
        """
        self.builder = builder
        self.task_store = task_store
        self.executor = executor
        self.clock = clock
        self.logger = get_logger(__name__)

        self._tasks: Dict[str, BuildingTask] = {t.id: t for t in task_store.list()}
        self._runners: Dict[str, asyncio.Task] = {}
        self._cancel_events: Dict[str, threading.Event] = {}
        self._businesses: Dict[str, BusinessRecord] = {}
        self._api_keys: Dict[str, Optional[str]] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> Optional[BuildingTask]:
        """The task with this id, or None."""
        return self._tasks.get(task_id)

    def list_tasks(self) -> List[BuildingTask]:
        """All known tasks, newest first."""
        return sorted(self._tasks.values(), key=lambda t: t.started_at, reverse=True)

    def find(self, business_id: str, agent_type: Union[AgentType, str]) -> Optional[BuildingTask]:
        """The task for a business and agent pair, whatever its status."""
        key = (business_id, AgentType(agent_type))
        return next((t for t in self._tasks.values() if t.key == key), None)

    def active_tasks(self) -> List[BuildingTask]:
        """Tasks that are queued or building."""
        return [t for t in self.list_tasks() if t.status in _IN_PROGRESS]

    def is_running(self, task_id: str) -> bool:
        """Whether a build for the task is executing in this process.

        A task persisted as building by another process is not running.
        """
        runner = self._runners.get(task_id)
        return runner is not None and not runner.done()

    def widget_state(self) -> Dict[str, Any]:
        """Summary for the minimized floating progress widget."""
        now = self.clock()
        items = []
        for task in self.active_tasks():
            remaining = 0
            if task.estimated_completion is not None:
                remaining = max(0, int((task.estimated_completion - now).total_seconds()))
            items.append({
                "id": task.id,
                "business_name": task.business_name,
                "agent_type": task.agent_type.value,
                "status": task.status.value,
                "progress": task.progress,
                "current_step": task.current_step,
                "remaining_seconds": remaining,
            })
        return {"count": len(items), "tasks": items}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        business: BusinessRecord,
        agent_type: Union[AgentType, str],
        api_key: Optional[str] = None,
    ) -> BuildingTask:
        """Start a build for a business.

        A paused or finished task for the same business and agent is replaced.

        Raises:
            BuildInProgressError: If that pair is already queued or building.
        """
        agent_type = AgentType(agent_type)
        existing = self.find(business.id, agent_type)
        if existing is not None:
            if existing.status in _IN_PROGRESS:
                raise BuildInProgressError(
                    f"{business.name} already has a {agent_type.value} build in progress",
                    context={"task_id": existing.id, "business_id": business.id},
                )
            self._discard(existing.id)

        task = BuildingTask(
            business_id=business.id,
            business_name=business.name,
            agent_type=agent_type,
            started_at=self.clock(),
        )
        while task.id in self._tasks:
            task.id = str(int(task.id) + 1)
        self._tasks[task.id] = task
        self._persist(task)

        self._launch(task, business, api_key)
        return task

    async def pause(self, task_id: str) -> BuildingTask:
        """Stop a running build, keeping it resumable.

        Raises:
            KeyError: If the task is unknown.
            InvalidTransitionError: If the task is not building.
        """
        task = self._require(task_id)
        task.transition_to(TaskStatus.PAUSED, step=STEP_PAUSED)
        self._stop_runner(task_id)
        self._persist(task)
        self._task_logger(task).info("Build paused")
        return task

    async def resume(
        self,
        task_id: str,
        business: Optional[BusinessRecord] = None,
        api_key: Optional[str] = None,
    ) -> BuildingTask:
        """Restart a paused build from the beginning under the same task id.

        Args:
            task_id: The paused task.
            business: Business record, required when the task was restored
                from storage rather than started by this tracker.
            api_key: Gateway credential, defaults to the one the task started with.

        Raises:
            KeyError: If the task is unknown.
            InvalidTransitionError: If the task is not paused.
            LeadForgeError: If no business record is available for the task.
        """
        task = self._require(task_id)
        if task.status != TaskStatus.PAUSED:
            raise InvalidTransitionError(
                f"Task {task_id} is {task.status.value}, only paused tasks can be resumed",
                context={"task_id": task_id},
            )

        business = business or self._businesses.get(task_id)
        if business is None:
            raise LeadForgeError(
                f"No business record available to resume task {task_id}",
                category=ErrorCategory.VALIDATION,
                context={"task_id": task_id, "business_id": task.business_id},
            )
        key = api_key if api_key is not None else self._api_keys.get(task_id)
        self._launch(task, business, key)
        self._task_logger(task).info("Build resumed")
        return task

    async def cancel(self, task_id: str) -> BuildingTask:
        """Abort a running build and mark it failed.

        Raises:
            KeyError: If the task is unknown.
            InvalidTransitionError: If the task is not building.
        """
        task = self._require(task_id)
        task.transition_to(TaskStatus.ERROR, step=STEP_CANCELLED, error=CANCELLED_BY_USER)
        self._stop_runner(task_id)
        self._persist(task)
        self._task_logger(task).info("Build cancelled")
        return task

    async def dismiss(self, task_id: str) -> None:
        """Forget a task that is not in progress.

        Raises:
            BuildInProgressError: If the task is still queued or building.
        """
        task = self._require(task_id)
        if task.status in _IN_PROGRESS:
            raise BuildInProgressError(
                f"Task {task_id} is still {task.status.value}",
                context={"task_id": task_id},
            )
        self._discard(task_id)

    async def wait(self, task_id: str) -> BuildingTask:
        """Wait until the task's current run has finished."""
        runner = self._runners.get(task_id)
        if runner is not None:
            await asyncio.wait({runner})
        return self._require(task_id)

    async def restore(
        self, businesses: Optional[Dict[str, BusinessRecord]] = None
    ) -> List[BuildingTask]:
        """Reload persisted tasks after a restart.

        Tasks left building by a previous process become paused with the
        step "Interrupted". Queued tasks are started when their business is
        present in ``businesses``.

        Returns:
            Tasks whose state changed.
        """
        businesses = businesses or {}
        changed = []
        for task in self.task_store.list():
            if self.is_running(task.id):
                continue
            self._tasks[task.id] = task

            if task.status == TaskStatus.BUILDING:
                task.transition_to(TaskStatus.PAUSED, step=STEP_INTERRUPTED)
                self._persist(task)
                changed.append(task)
            elif task.status == TaskStatus.QUEUED:
                business = businesses.get(task.business_id)
                if business is None:
                    self._task_logger(task).warning("Queued task has no business record, leaving it queued")
                    continue
                self._launch(task, business, None)
                changed.append(task)

        if changed:
            self.logger.info(f"Restored {len(changed)} background task(s)")
        return changed

    async def shutdown(self) -> None:
        """Stop every running build without changing task state."""
        for task_id in list(self._runners):
            self._stop_runner(task_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, task_id: str) -> BuildingTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise KeyError(task_id)
        return task

    def _task_logger(self, task: BuildingTask) -> ContextAdapter:
        return ContextAdapter(
            self.logger,
            {
                "task_id": task.id,
                "business_id": task.business_id,
                "agent_type": task.agent_type.value,
            },
        )

    def _persist(self, task: BuildingTask) -> None:
        try:
            self.task_store.upsert(task)
        except StorageError as e:
            handle_error(e, context={"task_id": task.id})

    def _discard(self, task_id: str) -> None:
        self._stop_runner(task_id)
        self._tasks.pop(task_id, None)
        self._businesses.pop(task_id, None)
        self._api_keys.pop(task_id, None)
        try:
            self.task_store.remove(task_id)
        except StorageError as e:
            handle_error(e, context={"task_id": task_id})

    def _stop_runner(self, task_id: str) -> None:
        event = self._cancel_events.pop(task_id, None)
        if event is not None:
            event.set()
        runner = self._runners.pop(task_id, None)
        if runner is not None and not runner.done():
            runner.cancel()

    def _is_current(self, task_id: str, event: threading.Event) -> bool:
        return self._cancel_events.get(task_id) is event and not event.is_set()

    def _launch(self, task: BuildingTask, business: BusinessRecord, api_key: Optional[str]) -> None:
        """Move a task to building and schedule its run. Needs a running loop."""
        task.transition_to(TaskStatus.BUILDING, step=STEP_INITIALIZING)
        task.estimated_completion = self.clock() + timedelta(seconds=ESTIMATED_BUILD_SECONDS)
        self._persist(task)

        event = threading.Event()
        self._cancel_events[task.id] = event
        self._businesses[task.id] = business
        self._api_keys[task.id] = api_key

        loop = asyncio.get_running_loop()
        self._runners[task.id] = loop.create_task(self._run(task, business, api_key, event))
        self._task_logger(task).info(f"Build started for {business.name}")

    def _record_progress(
        self, task_id: str, event: threading.Event, progress: int, step: str
    ) -> None:
        if not self._is_current(task_id, event):
            return
        task = self._tasks.get(task_id)
        if task is None or task.status != TaskStatus.BUILDING:
            return
        task.advance(progress, step)
        self._persist(task)

    async def _run(
        self,
        task: BuildingTask,
        business: BusinessRecord,
        api_key: Optional[str],
        event: threading.Event,
    ) -> None:
        log = self._task_logger(task)
        loop = asyncio.get_running_loop()

        def on_progress(progress: int, step: str) -> None:
            loop.call_soon_threadsafe(self._record_progress, task.id, event, progress, step)

        build = functools.partial(
            self.builder.build,
            business,
            task.agent_type,
            api_key=api_key,
            on_progress=on_progress,
            cancel_event=event,
            artifact_id=task.id,
        )

        try:
            try:
                artifact = await loop.run_in_executor(self.executor, build)
            except asyncio.CancelledError:
                event.set()
                raise
            except BuildCancelledError:
                log.info("Build stopped at checkpoint")
                return
            except Exception as e:
                if not self._is_current(task.id, event):
                    return
                notice = handle_error(e, context={"task_id": task.id, "business_id": task.business_id})
                task.transition_to(TaskStatus.ERROR, step=STEP_FAILED, error=notice.message)
                self._persist(task)
                return

            if not self._is_current(task.id, event):
                log.info("Discarding result of a superseded build")
                return

            task.artifact = artifact
            task.transition_to(TaskStatus.COMPLETED, step=STEP_COMPLETE)
            self._persist(task)
            log.info(f"Build completed: {artifact.name}")
        finally:
            if self._cancel_events.get(task.id) is event:
                self._cancel_events.pop(task.id, None)
                self._runners.pop(task.id, None)
