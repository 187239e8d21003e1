"""Durable key-value store and the repositories built on it.

Values are JSON documents stored one file per key. Everything read back goes
through the pydantic models, which turns stored ISO date strings back into
datetime objects.
"""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from .errors import StorageError
from .logging_utils import get_logger
from .models import (
    AgentType,
    AnalysisStatus,
    AnalyzedBusinessRecord,
    ArtifactHistoryItem,
    BuildingTask,
    BusinessRecord,
    GeneratedArtifact,
    ProjectStatus,
    SearchHistoryEntry,
    UserProject,
    utcnow,
)

logger = get_logger(__name__)


class StorageKeys:
    """Fixed keys of the durable store."""

    SEARCH_HISTORY = "findworkai_search_history"
    ANALYZED_BUSINESSES = "findworkai_analyzed_businesses"
    USER_PREFERENCES = "findworkai_user_preferences"
    ONBOARDING_COMPLETED = "findworkai_onboarding_completed"
    BUILDING_TASKS = "ai_building_tasks"
    ARTIFACTS = "ai-artifacts-storage"

    @staticmethod
    def user_projects(user_id: Optional[str]) -> str:
        return f"findworkai_user_projects_{user_id or 'guest'}"


_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class LocalStore:
    """JSON-file key-value store.

    Each key maps to ``<directory>/<key>.json``. Writes go through a temp
    file and an atomic rename so a crash never leaves a half-written value.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_SAFE_KEY.sub('_', key)}.json"

    def get(self, key: str, default: Any = None) -> Any:
        """Read a value; missing or unreadable keys return the default."""
        path = self._path(key)
        if not path.exists():
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Error reading %s from store: %s", key, e)
            return default

    def set(self, key: str, value: Any) -> None:
        """Write a JSON-serializable value.

        Raises:
            StorageError: If the value cannot be written.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_name: Optional[str] = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, default=str)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(
                f"Error writing {key} to store: {e}", context={"key": key}
            ) from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def keys(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))

    def clear(self) -> None:
        for key in self.keys():
            self.remove(key)


def _load_models(store: LocalStore, key: str, model: Any) -> List[Any]:
    """Load a list of models, dropping entries that no longer validate."""
    items = []
    for raw in store.get(key, []) or []:
        try:
            items.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning("Dropping invalid %s entry: %s", key, e.error_count())
    return items


def _dump_models(items: List[Any]) -> List[Dict[str, Any]]:
    return [item.model_dump(mode="json") for item in items]


def _export(path: Union[str, Path], items: List[Any]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(_dump_models(items), indent=2), encoding="utf-8")
    return path


class SearchHistoryStore:
    """Most recent searches, newest first."""

    MAX_ENTRIES = 50

    def __init__(self, store: LocalStore):
        self.store = store

    def list(self) -> List[SearchHistoryEntry]:
        return _load_models(self.store, StorageKeys.SEARCH_HISTORY, SearchHistoryEntry)

    def add(self, entry: SearchHistoryEntry) -> List[SearchHistoryEntry]:
        history = [entry] + self.list()
        history = history[: self.MAX_ENTRIES]
        self.store.set(StorageKeys.SEARCH_HISTORY, _dump_models(history))
        return history

    def delete(self, entry_id: str) -> bool:
        history = self.list()
        remaining = [e for e in history if e.id != entry_id]
        self.store.set(StorageKeys.SEARCH_HISTORY, _dump_models(remaining))
        return len(remaining) != len(history)

    def export_json(self, path: Union[str, Path]) -> Path:
        return _export(path, self.list())


class AnalyzedBusinessStore:
    """Businesses that have been scored, newest first, unique by id."""

    def __init__(self, store: LocalStore):
        self.store = store

    def list(self) -> List[AnalyzedBusinessRecord]:
        return _load_models(
            self.store, StorageKeys.ANALYZED_BUSINESSES, AnalyzedBusinessRecord
        )

    def get(self, business_id: str) -> Optional[AnalyzedBusinessRecord]:
        return next((b for b in self.list() if b.id == business_id), None)

    def _save(self, records: List[AnalyzedBusinessRecord]) -> None:
        self.store.set(StorageKeys.ANALYZED_BUSINESSES, _dump_models(records))

    def upsert(self, record: AnalyzedBusinessRecord) -> None:
        """Replace the record with the same id in place, or prepend it."""
        records = self.list()
        for i, existing in enumerate(records):
            if existing.id == record.id:
                records[i] = record
                break
        else:
            records.insert(0, record)
        self._save(records)

    def _update(self, business_id: str, **changes: Any) -> AnalyzedBusinessRecord:
        records = self.list()
        for i, existing in enumerate(records):
            if existing.id == business_id:
                updated = existing.model_copy(
                    update={**changes, "last_updated": utcnow()}
                )
                records[i] = updated
                self._save(records)
                return updated
        raise KeyError(business_id)

    def update_status(
        self, business_id: str, status: Union[AnalysisStatus, str]
    ) -> AnalyzedBusinessRecord:
        """Change the pipeline status and refresh last_updated.

        Raises:
            KeyError: If no record has that id.
            ValueError: If the status is unknown.
        """
        return self._update(business_id, status=AnalysisStatus(status))

    def add_note(self, business_id: str, note: str) -> AnalyzedBusinessRecord:
        """Set the record's notes and refresh last_updated."""
        return self._update(business_id, notes=note)

    def export_json(self, path: Union[str, Path]) -> Path:
        return _export(path, self.list())


class ArtifactHistoryStore:
    """Generated artifacts, newest first.

    Up to MAX_IN_MEMORY items are kept for the session; only the newest
    MAX_PERSISTED survive in the durable store.
    """

    MAX_IN_MEMORY = 50
    MAX_PERSISTED = 20

    def __init__(self, store: LocalStore):
        self.store = store
        self.items: List[ArtifactHistoryItem] = []
        self.current: Optional[GeneratedArtifact] = None
        self.load()

    def load(self) -> List[ArtifactHistoryItem]:
        """Replace the session list with the persisted items."""
        self.items = _load_models(self.store, StorageKeys.ARTIFACTS, ArtifactHistoryItem)
        return self.items

    def _persist(self) -> None:
        self.store.set(
            StorageKeys.ARTIFACTS, _dump_models(self.items[: self.MAX_PERSISTED])
        )

    def save(
        self,
        artifact: GeneratedArtifact,
        business: Optional[BusinessRecord] = None,
    ) -> ArtifactHistoryItem:
        item = ArtifactHistoryItem.from_artifact(
            artifact,
            business_name=business.name if business else "",
            business_category=business.category if business else "",
        )
        self.items = [item] + [i for i in self.items if i.id != item.id]
        self.items = self.items[: self.MAX_IN_MEMORY]
        self._persist()
        return item

    def get_by_id(self, artifact_id: str) -> Optional[ArtifactHistoryItem]:
        return next((i for i in self.items if i.id == artifact_id), None)

    def update(self, artifact_id: str, content: Union[str, Dict[str, Any]]) -> ArtifactHistoryItem:
        """Replace an artifact's content and refresh its saved_at.

        Raises:
            KeyError: If the artifact is not in history.
        """
        item = self.get_by_id(artifact_id)
        if item is None:
            raise KeyError(artifact_id)
        item.replace_content(content)
        item.saved_at = utcnow()
        if self.current is not None and self.current.id == artifact_id:
            self.current.replace_content(content)
        self._persist()
        return item

    def delete(self, artifact_id: str) -> bool:
        before = len(self.items)
        self.items = [i for i in self.items if i.id != artifact_id]
        if self.current is not None and self.current.id == artifact_id:
            self.current = None
        self._persist()
        return len(self.items) != before

    def clear(self) -> None:
        self.items = []
        self.current = None
        self.store.remove(StorageKeys.ARTIFACTS)

    def set_current(self, artifact: Optional[GeneratedArtifact]) -> None:
        self.current = artifact

    def export_json(self, path: Union[str, Path]) -> Path:
        return _export(path, self.items)


class TaskStore:
    """Background build tasks, upserted by id."""

    def __init__(self, store: LocalStore):
        self.store = store

    def list(self) -> List[BuildingTask]:
        return _load_models(self.store, StorageKeys.BUILDING_TASKS, BuildingTask)

    def get(self, task_id: str) -> Optional[BuildingTask]:
        return next((t for t in self.list() if t.id == task_id), None)

    def find(
        self, business_id: str, agent_type: Union[AgentType, str]
    ) -> Optional[BuildingTask]:
        """Return the task for a (business, agent type) pair, if any."""
        key: Tuple[str, AgentType] = (business_id, AgentType(agent_type))
        return next((t for t in self.list() if t.key == key), None)

    def upsert(self, task: BuildingTask) -> None:
        tasks = [t for t in self.list() if t.id != task.id]
        tasks.append(task)
        self.store.set(StorageKeys.BUILDING_TASKS, _dump_models(tasks))

    def remove(self, task_id: str) -> bool:
        tasks = self.list()
        remaining = [t for t in tasks if t.id != task_id]
        self.store.set(StorageKeys.BUILDING_TASKS, _dump_models(remaining))
        return len(remaining) != len(tasks)


class ProjectStore:
    """Per-user projects grouping artifacts by business."""

    def __init__(self, store: LocalStore, user_id: Optional[str] = None):
        self.store = store
        self.key = StorageKeys.user_projects(user_id)

    def list(self) -> List[UserProject]:
        return _load_models(self.store, self.key, UserProject)

    def _save(self, projects: List[UserProject]) -> None:
        self.store.set(self.key, _dump_models(projects))

    def get(self, project_id: str) -> Optional[UserProject]:
        return next((p for p in self.list() if p.id == project_id), None)

    def add_artifact(
        self, business: BusinessRecord, artifact: GeneratedArtifact
    ) -> UserProject:
        """Add an artifact to the business's project, creating the project if needed.

        The project is tagged with the artifact type.
        """
        projects = self.list()
        project = next((p for p in projects if p.business_id == business.id), None)
        if project is None:
            project = UserProject(
                business_id=business.id,
                business_name=business.name,
                business_category=business.category,
                location=business.location,
                opportunity_score=business.opportunity_score,
            )
            projects.insert(0, project)

        project.artifacts = [a for a in project.artifacts if a.id != artifact.id]
        project.artifacts.append(artifact)
        if artifact.type.value not in project.tags:
            project.tags.append(artifact.type.value)
        project.last_modified = utcnow()
        self._save(projects)
        return project

    def delete_project(self, project_id: str) -> bool:
        projects = self.list()
        remaining = [p for p in projects if p.id != project_id]
        self._save(remaining)
        return len(remaining) != len(projects)

    def delete_artifact(self, project_id: str, artifact_id: str) -> bool:
        projects = self.list()
        for project in projects:
            if project.id == project_id:
                before = len(project.artifacts)
                project.artifacts = [a for a in project.artifacts if a.id != artifact_id]
                if len(project.artifacts) == before:
                    return False
                project.last_modified = utcnow()
                self._save(projects)
                return True
        return False

    def search(
        self,
        query: str = "",
        status: Optional[Union[ProjectStatus, str]] = None,
    ) -> List[UserProject]:
        """Filter projects by name/category/location text and status."""
        needle = query.strip().lower()
        wanted = ProjectStatus(status) if status else None
        results = []
        for project in self.list():
            if wanted and project.status != wanted:
                continue
            haystack = " ".join(
                [project.business_name, project.business_category, project.location]
            ).lower()
            if needle and needle not in haystack:
                continue
            results.append(project)
        return results


class OnboardingState:
    """Whether the user has finished onboarding."""

    def __init__(self, store: LocalStore):
        self.store = store

    def is_completed(self) -> bool:
        return bool(self.store.get(StorageKeys.ONBOARDING_COMPLETED, False))

    def complete(self) -> None:
        self.store.set(StorageKeys.ONBOARDING_COMPLETED, True)
