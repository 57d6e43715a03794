"""
test_version_engine.py — Unit tests for BOQ version lifecycle.

Tests cover:
  - Version numbering and newest-first listing
  - Copy-from: fresh ids, identical table data, independent of the source
  - draft → submitted transition; submitted versions reject every write
  - Rejected writes leave the store untouched
  - Default version selection (first draft, else newest)

Async methods are driven with asyncio.run().
"""

import asyncio

import pytest

from boq_estimator.services.errors import ItemNotFound, ProjectNotFound, VersionLocked, VersionNotFound
from boq_estimator.services.store import STATUS_DRAFT, STATUS_SUBMITTED


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def project(version_engine):
    return run(version_engine.create_project("Tower A", client="Acme"))


@pytest.fixture
def draft(version_engine, project):
    return run(version_engine.create_version(project.id))


# ===========================================================================
# Class 1: Creating versions
# ===========================================================================

class TestCreateVersion:

    def test_first_version_is_draft_v1(self, draft):
        assert draft.version_number == 1
        assert draft.status == STATUS_DRAFT

    def test_numbers_increment_and_list_newest_first(self, version_engine, project, draft):
        v2 = run(version_engine.create_version(project.id))
        versions = run(version_engine.list_versions(project.id))
        assert [v.version_number for v in versions] == [2, 1]
        assert versions[0].id == v2.id

    def test_unknown_project(self, version_engine):
        with pytest.raises(ProjectNotFound):
            run(version_engine.create_version("nope"))

    def test_copy_from_gives_fresh_ids_same_data(self, version_engine, project, draft):
        for n in range(3):
            run(version_engine.add_item(draft.id, "doors", {"groups": [{"title": f"G{n}"}]}))
        v2 = run(version_engine.create_version(project.id, copy_from_version_id=draft.id))

        source = run(version_engine.list_items(draft.id))
        copies = run(version_engine.list_items(v2.id))
        assert len(copies) == 3
        assert {i.id for i in copies}.isdisjoint({i.id for i in source})
        assert sorted(i.table_data["groups"][0]["title"] for i in copies) == ["G0", "G1", "G2"]
        assert all(i.version_id == v2.id for i in copies)

    def test_copy_is_independent_of_source(self, version_engine, project, draft):
        item = run(version_engine.add_item(draft.id, "doors", {"groups": []}))
        v2 = run(version_engine.create_version(project.id, copy_from_version_id=draft.id))
        run(version_engine.delete_item(item.id))
        assert len(run(version_engine.list_items(v2.id))) == 1

    def test_copy_from_submitted_version_allowed(self, version_engine, project, draft):
        run(version_engine.add_item(draft.id, "doors", {"groups": []}))
        run(version_engine.submit(draft.id))
        v2 = run(version_engine.create_version(project.id, copy_from_version_id=draft.id))
        assert v2.status == STATUS_DRAFT
        assert len(run(version_engine.list_items(v2.id))) == 1


# ===========================================================================
# Class 2: Submission and locking
# ===========================================================================

class TestLocking:

    def test_submit(self, version_engine, draft):
        submitted = run(version_engine.submit(draft.id))
        assert submitted.status == STATUS_SUBMITTED
        assert submitted.is_submitted

    def test_submit_twice_rejected(self, version_engine, draft):
        run(version_engine.submit(draft.id))
        with pytest.raises(VersionLocked):
            run(version_engine.submit(draft.id))

    @pytest.mark.parametrize("call", [
        lambda ve, vid: ve.add_item(vid, "doors", {"groups": []}),
        lambda ve, vid: ve.add_items(vid, [("doors", {}), ("painting", {})]),
        lambda ve, vid: ve.save_edits(vid, {"rows": {}}),
        lambda ve, vid: ve.upsert_working_rows(vid, [{"row_id": "b1:m1"}]),
        lambda ve, vid: ve.delete_working_rows(vid, ["b1:m1"]),
        lambda ve, vid: ve.delete_version(vid),
    ])
    def test_writes_rejected_without_touching_store(self, version_engine, store, draft, call):
        run(version_engine.submit(draft.id))
        before = store.write_count
        with pytest.raises(VersionLocked):
            run(call(version_engine, draft.id))
        assert store.write_count == before

    def test_delete_item_on_submitted_rejected(self, version_engine, store, draft):
        item = run(version_engine.add_item(draft.id, "doors", {"groups": []}))
        run(version_engine.submit(draft.id))
        with pytest.raises(VersionLocked):
            run(version_engine.delete_item(item.id))
        assert len(run(version_engine.list_items(draft.id))) == 1

    def test_add_items_single_write(self, version_engine, store, draft):
        before = store.write_count
        items = run(version_engine.add_items(draft.id, [("doors", {"n": 1}), ("painting", {"n": 2})]))
        assert [i.work_package for i in items] == ["doors", "painting"]
        assert all(i.version_id == draft.id for i in items)
        assert store.write_count == before + 1
        assert len(run(version_engine.list_items(draft.id))) == 2

    def test_reads_allowed_on_submitted(self, version_engine, draft):
        run(version_engine.save_edits(draft.id, {"rows": {"b1:m1": {"quantity": 2}}}))
        run(version_engine.submit(draft.id))
        assert run(version_engine.get_edits(draft.id))["rows"]["b1:m1"]["quantity"] == 2


# ===========================================================================
# Class 3: Misc lifecycle
# ===========================================================================

class TestLifecycle:

    def test_delete_draft(self, version_engine, project, draft):
        run(version_engine.delete_version(draft.id))
        assert run(version_engine.list_versions(project.id)) == []

    def test_unknown_version(self, version_engine):
        with pytest.raises(VersionNotFound):
            run(version_engine.list_items("missing"))

    def test_unknown_item(self, version_engine):
        with pytest.raises(ItemNotFound):
            run(version_engine.delete_item("missing"))

    def test_default_version_prefers_draft(self, version_engine, project, draft):
        v2 = run(version_engine.create_version(project.id))
        run(version_engine.submit(v2.id))
        assert run(version_engine.default_version(project.id)).id == draft.id

    def test_default_version_falls_back_to_newest(self, version_engine, project, draft):
        run(version_engine.submit(draft.id))
        assert run(version_engine.default_version(project.id)).id == draft.id
        assert run(version_engine.current_draft(project.id)) is None

    def test_working_rows_upsert_by_row_id(self, version_engine, draft):
        run(version_engine.upsert_working_rows(draft.id, [{"row_id": "b1:m1", "quantity": 1}]))
        run(version_engine.upsert_working_rows(draft.id, [{"row_id": "b1:m1", "quantity": 4}]))
        rows = run(version_engine.list_working_rows(draft.id))
        assert len(rows) == 1
        assert rows[0]["quantity"] == 4
