"""
BOQ Store — persistence interface for projects, versions, items, edits and
working-set rows, plus the in-memory implementation used in dev mode and tests.

The SQL implementation lives in ``sql_store``. Stores do not enforce the
draft/submitted rule; that is ``VersionEngine``'s job.
"""
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from boq_estimator.services.errors import ItemNotFound, ProjectNotFound, VersionNotFound

logger = logging.getLogger("boq-store")

STATUS_DRAFT = "draft"
STATUS_SUBMITTED = "submitted"


def gen_uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Project:
    name: str
    client: str = ""
    budget: Optional[float] = None
    location: str = ""
    id: str = field(default_factory=gen_uuid)


@dataclass
class BOQVersion:
    project_id: str
    version_number: int
    status: str = STATUS_DRAFT
    id: str = field(default_factory=gen_uuid)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def is_submitted(self) -> bool:
        return self.status == STATUS_SUBMITTED


@dataclass
class BOQItem:
    project_id: str
    version_id: str
    work_package: str
    table_data: Dict[str, Any]
    id: str = field(default_factory=gen_uuid)
    created_at: datetime = field(default_factory=_now)


class BoqStore(ABC):
    # ── projects ──
    @abstractmethod
    async def create_project(self, project: Project) -> Project: ...

    @abstractmethod
    async def get_project(self, project_id: str) -> Project: ...

    # ── versions ──
    @abstractmethod
    async def add_version(self, version: BOQVersion) -> BOQVersion: ...

    @abstractmethod
    async def get_version(self, version_id: str) -> BOQVersion: ...

    @abstractmethod
    async def list_versions(self, project_id: str) -> List[BOQVersion]:
        """Newest first."""

    @abstractmethod
    async def set_version_status(self, version_id: str, status: str) -> BOQVersion: ...

    @abstractmethod
    async def delete_version(self, version_id: str) -> None: ...

    # ── items ──
    @abstractmethod
    async def add_items(self, items: List[BOQItem]) -> List[BOQItem]: ...

    @abstractmethod
    async def list_items(self, version_id: str) -> List[BOQItem]: ...

    @abstractmethod
    async def get_item(self, item_id: str) -> BOQItem: ...

    @abstractmethod
    async def delete_item(self, item_id: str) -> None: ...

    # ── edits (overrides) ──
    @abstractmethod
    async def save_edits(self, version_id: str, edits: Dict[str, Any]) -> None: ...

    @abstractmethod
    async def get_edits(self, version_id: str) -> Dict[str, Any]: ...

    # ── working-set rows ──
    @abstractmethod
    async def upsert_rows(self, project_id: str, version_id: str, rows: List[Dict[str, Any]]) -> int:
        """Insert or replace rows keyed by ``row_id``; returns rows written."""

    @abstractmethod
    async def list_rows(self, version_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def delete_rows(self, version_id: str, row_ids: List[str]) -> int: ...


class InMemoryBoqStore(BoqStore):
    """Dict-backed store. Returned records are copies so callers cannot mutate state."""

    def __init__(self):
        self.projects: Dict[str, Project] = {}
        self.versions: Dict[str, BOQVersion] = {}
        self.items: Dict[str, BOQItem] = {}
        self.edits: Dict[str, Dict[str, Any]] = {}
        self.rows: Dict[str, Dict[str, Dict[str, Any]]] = {}   # version_id → row_id → row
        self.write_count = 0

    def _touch(self) -> None:
        self.write_count += 1

    async def create_project(self, project: Project) -> Project:
        self.projects[project.id] = copy.deepcopy(project)
        self._touch()
        return copy.deepcopy(project)

    async def get_project(self, project_id: str) -> Project:
        if project_id not in self.projects:
            raise ProjectNotFound(project_id)
        return copy.deepcopy(self.projects[project_id])

    async def add_version(self, version: BOQVersion) -> BOQVersion:
        self.versions[version.id] = copy.deepcopy(version)
        self._touch()
        return copy.deepcopy(version)

    async def get_version(self, version_id: str) -> BOQVersion:
        if version_id not in self.versions:
            raise VersionNotFound(version_id)
        return copy.deepcopy(self.versions[version_id])

    async def list_versions(self, project_id: str) -> List[BOQVersion]:
        found = [v for v in self.versions.values() if v.project_id == project_id]
        found.sort(key=lambda v: v.version_number, reverse=True)
        return copy.deepcopy(found)

    async def set_version_status(self, version_id: str, status: str) -> BOQVersion:
        if version_id not in self.versions:
            raise VersionNotFound(version_id)
        version = self.versions[version_id]
        version.status = status
        version.updated_at = _now()
        self._touch()
        return copy.deepcopy(version)

    async def delete_version(self, version_id: str) -> None:
        if version_id not in self.versions:
            raise VersionNotFound(version_id)
        del self.versions[version_id]
        self.items = {k: v for k, v in self.items.items() if v.version_id != version_id}
        self.edits.pop(version_id, None)
        self.rows.pop(version_id, None)
        self._touch()

    async def add_items(self, items: List[BOQItem]) -> List[BOQItem]:
        for item in items:
            self.items[item.id] = copy.deepcopy(item)
        self._touch()
        return copy.deepcopy(items)

    async def list_items(self, version_id: str) -> List[BOQItem]:
        found = [i for i in self.items.values() if i.version_id == version_id]
        found.sort(key=lambda i: i.created_at)
        return copy.deepcopy(found)

    async def get_item(self, item_id: str) -> BOQItem:
        if item_id not in self.items:
            raise ItemNotFound(item_id)
        return copy.deepcopy(self.items[item_id])

    async def delete_item(self, item_id: str) -> None:
        if item_id not in self.items:
            raise ItemNotFound(item_id)
        del self.items[item_id]
        self._touch()

    async def save_edits(self, version_id: str, edits: Dict[str, Any]) -> None:
        self.edits[version_id] = copy.deepcopy(edits)
        self._touch()

    async def get_edits(self, version_id: str) -> Dict[str, Any]:
        return copy.deepcopy(self.edits.get(version_id, {}))

    async def upsert_rows(self, project_id: str, version_id: str, rows: List[Dict[str, Any]]) -> int:
        bucket = self.rows.setdefault(version_id, {})
        for row in rows:
            bucket[row["row_id"]] = {**copy.deepcopy(row), "project_id": project_id}
        self._touch()
        return len(rows)

    async def list_rows(self, version_id: str) -> List[Dict[str, Any]]:
        return copy.deepcopy(list(self.rows.get(version_id, {}).values()))

    async def delete_rows(self, version_id: str, row_ids: List[str]) -> int:
        bucket = self.rows.get(version_id, {})
        removed = 0
        for row_id in row_ids:
            if bucket.pop(row_id, None) is not None:
                removed += 1
        self._touch()
        return removed
