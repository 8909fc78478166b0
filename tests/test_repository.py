"""Tests for the task repository commands and queries."""

from datetime import timedelta

import pytest

from planbuddy.adapters.memory_store import InMemoryRecordStore
from planbuddy.config import Config
from planbuddy.core.errors import NotFoundError, StorageError, ValidationError
from planbuddy.core.tasks import Priority, Quadrant, Status
from planbuddy.repository import TaskRepository


class TestInitialization:
    def test_writes_default_buckets(self, store, repo):
        assert store.get("tasks") == []
        assert store.get("archived") == []
        assert store.get("q2Count") == 0
        meta = repo.sync_meta()
        assert meta.last_jira_sync is None
        assert meta.initial_sync_days == 7
        assert meta.safety_net_hours == 24

    def test_sync_defaults_come_from_config(self, clock):
        config = Config(initial_sync_days=14, safety_net_hours=48)
        repo = TaskRepository(InMemoryRecordStore(), config=config, clock=clock)
        assert repo.sync_meta().initial_sync_days == 14
        assert repo.sync_meta().safety_net_hours == 48

    def test_keeps_existing_data(self, store, clock):
        first = TaskRepository(store, clock=clock)
        task = first.create("Keep me")
        second = TaskRepository(store, clock=clock)
        assert second.get_by_id(task.id) == task

    def test_corrupt_record_raises_storage_error(self, clock):
        store = InMemoryRecordStore({"tasks": [{"title": "missing id"}]})
        repo = TaskRepository(store, clock=clock)
        with pytest.raises(StorageError):
            repo.list_tasks()


class TestCreate:
    def test_create_then_get(self, repo):
        task = repo.create("  Review Q3 roadmap  ", origin="braindump")
        fetched = repo.get_by_id(task.id)
        assert fetched is not None
        assert fetched.title == "Review Q3 roadmap"
        assert fetched.quadrant == Quadrant.UNCATEGORIZED
        assert fetched.source == "braindump"

    def test_stamps_creation(self, repo, now):
        task = repo.create("Test")
        assert task.date_created == now
        assert task.date_updated == now
        assert task.sync_origin_timestamp == now

    def test_rejects_ticket_of_another_active_task(self, repo):
        repo.create("A", origin="jira", external_ticket_id="BDC-1")
        with pytest.raises(ValidationError, match="BDC-1"):
            repo.create("B", origin="jira", external_ticket_id="BDC-1")
        assert len(repo.list_tasks()) == 1

    def test_ticket_of_completed_task_can_be_reused(self, repo):
        done = repo.create("A", origin="jira", external_ticket_id="BDC-1")
        repo.complete(done.id)
        repo.create("B", origin="jira", external_ticket_id="BDC-1")
        assert len(repo.list_tasks()) == 2

    def test_empty_title_is_not_persisted(self, repo, store):
        with pytest.raises(ValidationError):
            repo.create("   ")
        assert store.get("tasks") == []

    def test_unique_ids(self, repo):
        ids = {repo.create(f"Task {i}").id for i in range(20)}
        assert len(ids) == 20

    def test_get_missing_returns_none(self, repo):
        assert repo.get_by_id("nope") is None


class TestUpdate:
    def test_merges_fields_and_restamps(self, repo, clock):
        task = repo.create("Old title")
        later = clock.advance(minutes=10)

        updated = repo.update(task.id, title="New title", priority="high")

        assert updated.title == "New title"
        assert updated.priority == Priority.HIGH
        assert updated.date_updated == later
        assert repo.get_by_id(task.id) == updated

    def test_restamps_even_without_changes(self, repo, clock):
        task = repo.create("Test")
        later = clock.advance(minutes=1)
        assert repo.update(task.id).date_updated == later

    def test_ignores_id_and_date_created(self, repo, now, clock):
        task = repo.create("Test")
        clock.advance(hours=1)

        updated = repo.update(task.id, id="hijacked", date_created=now - timedelta(days=30))

        assert updated.id == task.id
        assert updated.date_created == now
        assert repo.get_by_id("hijacked") is None

    def test_missing_task(self, repo):
        with pytest.raises(NotFoundError) as exc:
            repo.update("ghost", title="x")
        assert exc.value.task_id == "ghost"

    def test_rejects_ticket_of_another_active_task(self, repo):
        repo.create("A", origin="jira", external_ticket_id="BDC-1")
        b = repo.create("B", origin="jira", external_ticket_id="BDC-2")

        with pytest.raises(ValidationError, match="BDC-1"):
            repo.update(b.id, external_ticket_id="BDC-1")

        assert repo.get_by_id(b.id) == b
        active = [t for t in repo.list_tasks() if t.is_active and t.external_ticket_id == "BDC-1"]
        assert len(active) == 1

    def test_keeping_own_ticket_is_allowed(self, repo):
        task = repo.create("A", origin="jira", external_ticket_id="BDC-1")
        updated = repo.update(task.id, title="Renamed", external_ticket_id="BDC-1")
        assert updated.title == "Renamed"

    def test_invalid_quadrant_leaves_task_unchanged(self, repo):
        task = repo.create("Test")
        with pytest.raises(ValidationError):
            repo.update(task.id, quadrant="q7")
        assert repo.get_by_id(task.id) == task


class TestDelete:
    def test_delete_existing(self, repo):
        task = repo.create("Test")
        assert repo.delete(task.id) is True
        assert repo.get_by_id(task.id) is None

    def test_delete_missing(self, repo):
        repo.create("Test")
        assert repo.delete("ghost") is False
        assert len(repo.list_tasks()) == 1


class TestListByQuadrant:
    def test_insertion_order(self, repo):
        a = repo.create("A", quadrant="q1")
        repo.create("B", quadrant="q2")
        c = repo.create("C", quadrant="q1")
        assert [t.id for t in repo.list_by_quadrant("q1")] == [a.id, c.id]

    def test_empty_quadrant(self, repo):
        repo.create("A")
        assert repo.list_by_quadrant(Quadrant.Q4) == []

    def test_invalid_quadrant(self, repo):
        with pytest.raises(ValidationError):
            repo.list_by_quadrant("urgent")


class TestCategorize:
    def test_moves_task(self, repo):
        task = repo.create("Plan next quarter")
        moved = repo.categorize(task.id, "q2", "medium")
        assert moved.quadrant == Quadrant.Q2
        assert repo.list_by_quadrant("uncategorized") == []
        assert [t.id for t in repo.list_by_quadrant("q2")] == [task.id]

    def test_records_every_transition(self, repo, clock):
        task = repo.create("Bounce around")
        clock.advance(minutes=1)
        repo.categorize(task.id, "q1", "high")
        clock.advance(minutes=1)
        moved = repo.categorize(task.id, "q3", "low")
        assert [c.quadrant for c in moved.quadrant_history] == [
            Quadrant.UNCATEGORIZED,
            Quadrant.Q1,
            Quadrant.Q3,
        ]

    def test_missing_task(self, repo):
        with pytest.raises(NotFoundError):
            repo.categorize("ghost", "q1")


class TestComplete:
    def test_marks_completed(self, repo, clock):
        task = repo.create("Test", quadrant="q1")
        later = clock.advance(minutes=5)
        completed = repo.complete(task.id)
        assert completed.status == Status.COMPLETED
        assert completed.date_completed == later
        assert completed.date_updated == later

    def test_q2_increments_counter(self, repo):
        task = repo.create("Strategic", quadrant="q2")
        repo.complete(task.id)
        assert repo.q2_count() == 1

    @pytest.mark.parametrize("quadrant", ["uncategorized", "q1", "q3", "q4"])
    def test_other_quadrants_leave_counter(self, repo, quadrant):
        task = repo.create("Other", quadrant=quadrant)
        repo.complete(task.id)
        assert repo.q2_count() == 0

    def test_second_complete_is_noop(self, repo, clock):
        task = repo.create("Strategic", quadrant="q2")
        first = repo.complete(task.id)
        clock.advance(hours=1)
        second = repo.complete(task.id)
        assert second.date_completed == first.date_completed
        assert repo.q2_count() == 1

    def test_missing_task(self, repo):
        with pytest.raises(NotFoundError):
            repo.complete("ghost")

    def test_milestone_message(self, repo, store):
        store.put("q2Count", 18)
        task = repo.create("Nineteen", quadrant="q2")
        repo.complete(task.id)
        assert repo.compute_stats().q2_progress.message == "1 more for sandwich"

        task = repo.create("Twenty", quadrant="q2")
        repo.complete(task.id)
        progress = repo.compute_stats().q2_progress
        assert progress.count == 20
        assert progress.rewards_earned == 1
        assert progress.message == "You earned a sandwich!"

    def test_reset_q2_count(self, repo, store):
        store.put("q2Count", 7)
        assert repo.reset_q2_count() == 0
        assert repo.q2_count() == 0


class TestSyncMeta:
    def test_update_sync_meta(self, repo):
        meta = repo.update_sync_meta(failed_sync_attempts=3)
        assert meta.failed_sync_attempts == 3
        assert repo.sync_meta().failed_sync_attempts == 3

    def test_record_sync_failure(self, repo, now):
        meta = repo.record_sync_failure(now, "boom")
        assert meta.last_jira_sync == now
        assert meta.last_successful_sync is None
        assert meta.failed_sync_attempts == 1
        assert meta.last_sync_error == "boom"

    def test_next_sync_window_first_run(self, repo, now):
        assert repo.next_sync_window() == now - timedelta(days=7)


class TestMaintenance:
    def test_export_reset_import_round_trip(self, repo, clock):
        a = repo.create("Alpha", quadrant="q2")
        b = repo.create("Beta", external_ticket_id="BDC-1", origin="jira")
        repo.complete(a.id)
        clock.advance(hours=2)
        repo.archive(b.id, "done")
        repo.record_sync_failure(clock(), "offline")

        exported = repo.export_all()
        repo.reset_all()
        assert repo.list_tasks() == []
        assert repo.q2_count() == 0

        repo.import_all(exported)

        assert repo.export_all() == exported
        assert repo.get_by_id(a.id).status == Status.COMPLETED
        assert [t.id for t in repo.list_archived()] == [b.id]
        assert repo.q2_count() == 1
        assert repo.sync_meta().last_sync_error == "offline"

    def test_reset_restores_defaults(self, repo, store):
        repo.create("Gone")
        store.put("q2Count", 4)
        repo.reset_all()
        assert store.get("tasks") == []
        assert store.get("archived") == []
        assert store.get("q2Count") == 0
        assert repo.sync_meta().last_jira_sync is None

    def test_import_accepts_legacy_bucket_names(self, repo):
        repo.import_all(
            {
                "TASKS": [{"id": "task_001", "title": "Legacy", "jiraTicket": "BM-9"}],
                "Q2_COUNT": 3,
                "USER_PROFILE": None,
            }
        )
        assert repo.get_by_id("task_001").external_ticket_id == "BM-9"
        assert repo.q2_count() == 3

    def test_import_leaves_missing_buckets(self, repo):
        task = repo.create("Stay")
        repo.import_all({"q2Count": 5})
        assert repo.get_by_id(task.id) == task
        assert repo.q2_count() == 5

    def test_invalid_import_writes_nothing(self, repo):
        task = repo.create("Stay")
        with pytest.raises(ValidationError):
            repo.import_all({"tasks": [{"id": "x", "title": "ok"}], "q2Count": -1})
        assert [t.id for t in repo.list_tasks()] == [task.id]

    @pytest.mark.parametrize(
        "snapshot",
        [
            {"tasks": ["oops"]},
            {"archived": [42]},
            {"tasks": [{"id": "x", "title": "t", "quadrantHistory": ["q2"]}]},
        ],
    )
    def test_import_rejects_non_object_records(self, repo, snapshot):
        task = repo.create("Stay")
        with pytest.raises(ValidationError):
            repo.import_all(snapshot)
        assert [t.id for t in repo.list_tasks()] == [task.id]
        assert repo.list_archived() == []

    def test_import_rejects_non_object(self, repo):
        with pytest.raises(ValidationError):
            repo.import_all(["not", "a", "snapshot"])
