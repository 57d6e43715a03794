"""
Version Engine — BOQ version lifecycle and the only gate on mutability.

    draft ──submit──▶ submitted   (terminal)

Every mutating operation loads the version first and raises VersionLocked
when it is submitted, before anything is written. Creating a version may copy
all items of a source version; copies get fresh ids and identical table data.
"""
import copy
import logging
from typing import Any, Dict, List, Optional, Tuple

from boq_estimator.services.errors import VersionLocked
from boq_estimator.services.store import (
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    BOQItem,
    BOQVersion,
    BoqStore,
    Project,
)

logger = logging.getLogger("boq-versions")


class VersionEngine:
    def __init__(self, store: BoqStore):
        self.store = store

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def create_project(self, name: str, client: str = "", budget: Optional[float] = None,
                             location: str = "") -> Project:
        project = await self.store.create_project(
            Project(name=name, client=client, budget=budget, location=location)
        )
        logger.info("Project created", extra={"project_id": project.id})
        return project

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    async def list_versions(self, project_id: str) -> List[BOQVersion]:
        return await self.store.list_versions(project_id)

    async def current_draft(self, project_id: str) -> Optional[BOQVersion]:
        """Most recent draft version, if any."""
        for version in await self.store.list_versions(project_id):
            if version.status == STATUS_DRAFT:
                return version
        return None

    async def default_version(self, project_id: str) -> Optional[BOQVersion]:
        """First draft (newest first), else the newest version."""
        versions = await self.store.list_versions(project_id)
        for version in versions:
            if version.status == STATUS_DRAFT:
                return version
        return versions[0] if versions else None

    async def create_version(self, project_id: str,
                             copy_from_version_id: Optional[str] = None) -> BOQVersion:
        await self.store.get_project(project_id)
        existing = await self.store.list_versions(project_id)
        next_number = max((v.version_number for v in existing), default=0) + 1

        source_items: List[BOQItem] = []
        if copy_from_version_id:
            source = await self.store.get_version(copy_from_version_id)
            source_items = await self.store.list_items(source.id)

        version = await self.store.add_version(BOQVersion(project_id=project_id, version_number=next_number))
        if source_items:
            copies = [
                BOQItem(
                    project_id=project_id,
                    version_id=version.id,
                    work_package=item.work_package,
                    table_data=copy.deepcopy(item.table_data),
                )
                for item in source_items
            ]
            await self.store.add_items(copies)

        logger.info(
            "Version %d created (%d item(s) copied)", next_number, len(source_items),
            extra={"project_id": project_id, "version_id": version.id},
        )
        return version

    async def submit(self, version_id: str) -> BOQVersion:
        version = await self._require_draft(version_id, "submit")
        submitted = await self.store.set_version_status(version.id, STATUS_SUBMITTED)
        logger.info("Version submitted", extra={"version_id": version_id})
        return submitted

    async def delete_version(self, version_id: str) -> None:
        await self._require_draft(version_id, "delete")
        await self.store.delete_version(version_id)
        logger.info("Version deleted", extra={"version_id": version_id})

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    async def list_items(self, version_id: str) -> List[BOQItem]:
        await self.store.get_version(version_id)
        return await self.store.list_items(version_id)

    async def add_item(self, version_id: str, work_package: str, table_data: Dict[str, Any]) -> BOQItem:
        stored = await self.add_items(version_id, [(work_package, table_data)])
        return stored[0]

    async def add_items(self, version_id: str,
                        entries: List[Tuple[str, Dict[str, Any]]]) -> List[BOQItem]:
        """Store several (work_package, table_data) items in one write."""
        version = await self._require_draft(version_id, "add items")
        items = [
            BOQItem(
                project_id=version.project_id,
                version_id=version.id,
                work_package=work_package,
                table_data=table_data,
            )
            for work_package, table_data in entries
        ]
        return await self.store.add_items(items)

    async def delete_item(self, item_id: str) -> None:
        item = await self.store.get_item(item_id)
        await self._require_draft(item.version_id, "delete items")
        await self.store.delete_item(item_id)

    # ------------------------------------------------------------------
    # Edits and working set
    # ------------------------------------------------------------------

    async def get_edits(self, version_id: str) -> Dict[str, Any]:
        await self.store.get_version(version_id)
        return await self.store.get_edits(version_id)

    async def save_edits(self, version_id: str, edits: Dict[str, Any]) -> None:
        await self._require_draft(version_id, "save edits")
        await self.store.save_edits(version_id, edits)

    async def list_working_rows(self, version_id: str) -> List[Dict[str, Any]]:
        await self.store.get_version(version_id)
        return await self.store.list_rows(version_id)

    async def upsert_working_rows(self, version_id: str, rows: List[Dict[str, Any]]) -> int:
        version = await self._require_draft(version_id, "save working set")
        return await self.store.upsert_rows(version.project_id, version.id, rows)

    async def delete_working_rows(self, version_id: str, row_ids: List[str]) -> int:
        await self._require_draft(version_id, "delete working set rows")
        return await self.store.delete_rows(version_id, row_ids)

    # ------------------------------------------------------------------

    async def _require_draft(self, version_id: str, action: str) -> BOQVersion:
        version = await self.store.get_version(version_id)
        if version.status == STATUS_SUBMITTED:
            logger.warning("Rejected '%s' on submitted version", action, extra={"version_id": version_id})
            raise VersionLocked(version_id, action)
        return version
