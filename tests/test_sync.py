"""Tests for the client sync model against the real API over ASGI."""

import asyncio
import json
from unittest.mock import patch

import httpx
import pytest

from daily_vibe.client import LocalMirror, SyncError, TaskSyncModel
from daily_vibe.config import get_settings
from daily_vibe.db import get_database
from daily_vibe.main import app


class FlakyTransport(httpx.AsyncBaseTransport):
    """Forwards to the app, except for queued failures.

    Failure modes:
        ``"500"``: answer 500 without reaching the app
        ``"drop"``: raise a connection error
        ``"lost"``: let the app handle the request, then answer 500
        ``"hold"``: wait until ``release`` is set, then raise a connection error
    """

    def __init__(self, inner: httpx.AsyncBaseTransport) -> None:
        self.inner = inner
        self.failures: list[str] = []
        self.requests: list[tuple[str, str]] = []
        self.holding = asyncio.Event()
        self.release = asyncio.Event()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        mode = self.failures.pop(0) if self.failures else None
        if mode == "hold":
            self.holding.set()
            await self.release.wait()
            raise httpx.ConnectError("connection reset", request=request)
        if mode == "drop":
            raise httpx.ConnectError("connection refused", request=request)
        if mode == "500":
            return httpx.Response(500, json={"success": False, "error": "Internal server error"})
        response = await self.inner.handle_async_request(request)
        if mode == "lost":
            await response.aread()
            return httpx.Response(500, json={"success": False, "error": "Internal server error"})
        return response


@pytest.fixture
def api(database, settings):
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_settings] = lambda: settings
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def mirror(tmp_path) -> LocalMirror:
    return LocalMirror(tmp_path / "mirror.json")


@pytest.fixture
def run(api, mirror):
    """Run ``scenario(model, transport)`` against a fresh sync model."""

    def _run(scenario):
        async def _main():
            transport = FlakyTransport(httpx.ASGITransport(app=api))
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
                model = TaskSyncModel(http, mirror)
                return await scenario(model, transport)

        return asyncio.run(_main())

    return _run


def _server_count(database, task_id: str) -> int:
    result = database.query("SELECT COUNT(*) AS n FROM tasks WHERE id = $1", [task_id])
    return result.rows[0]["n"]


class TestCreate:
    """Optimistic create and its outcomes."""

    def test_success_adopts_canonical_record(self, run, database):
        async def scenario(model, transport):
            return await model.create_task({"title": "Buy milk"})

        task = run(scenario)

        assert task["status"] == "todo"
        assert task["priority"] == "medium"
        assert _server_count(database, task["id"]) == 1

    def test_server_error_keeps_record_pending(self, run, database, mirror):
        """A 5xx create stays local; the next update resends it exactly once."""

        async def scenario(model, transport):
            transport.failures.append("500")
            local = await model.create_task({"title": "Offline draft"})
            pending_after_create = set(model.pending["task"])
            persisted = mirror.load()

            updated = await model.update_task(local["id"], {"status": "progress"})
            return local, pending_after_create, persisted, updated, model

        local, pending, persisted, updated, model = run(scenario)

        assert pending == {local["id"]}
        assert persisted["pendingTasks"] == [local["id"]]
        assert [t["id"] for t in persisted["tasks"]] == [local["id"]]

        assert updated["status"] == "progress"
        assert model.pending["task"] == set()
        assert _server_count(database, local["id"]) == 1

    def test_lost_response_is_reconciled_by_load(self, run, database):
        """A create that landed but whose answer was lost is not duplicated."""

        async def scenario(model, transport):
            transport.failures.append("lost")
            local = await model.create_task({"id": "T1", "title": "Landed"})
            assert model.pending["task"] == {"T1"}

            assert await model.load() is True
            assert model.pending["task"] == set()

            await model.update_task("T1", {"title": "Renamed"})
            return local, transport.requests

        local, requests = run(scenario)

        assert local["id"] == "T1"
        assert ("PUT", "/api/tasks/T1") in requests
        assert _server_count(database, "T1") == 1

    def test_client_error_rolls_back(self, run):
        async def scenario(model, transport):
            with pytest.raises(SyncError) as excinfo:
                await model.create_task({"description": "no title"})
            return excinfo.value, model

        error, model = run(scenario)

        assert error.status_code == 400
        assert error.message == "Task title is required"
        assert model.tasks == {}
        assert model.pending["task"] == set()


class TestUpdateAndDelete:
    """Rollback on failed update and delete."""

    def test_failed_update_restores_previous(self, run):
        async def scenario(model, transport):
            task = await model.create_task({"title": "Stable"})
            transport.failures.append("drop")
            with pytest.raises(SyncError):
                await model.update_task(task["id"], {"status": "completed"})
            return model.tasks[task["id"]]

        assert run(scenario)["status"] == "todo"

    def test_update_unknown_record(self, run):
        async def scenario(model, transport):
            with pytest.raises(SyncError):
                await model.update_task("nope", {"title": "x"})
            return transport.requests

        assert run(scenario) == []

    def test_failed_delete_restores_record(self, run, database):
        async def scenario(model, transport):
            task = await model.create_task({"title": "Keep me"})
            transport.failures.append("500")
            with pytest.raises(SyncError):
                await model.delete_task(task["id"])
            return task, model

        task, model = run(scenario)

        assert task["id"] in model.tasks
        assert _server_count(database, task["id"]) == 1

    def test_delete_of_pending_record_tolerates_404(self, run):
        async def scenario(model, transport):
            transport.failures.append("drop")
            local = await model.create_task({"title": "Never sent"})
            await model.delete_task(local["id"])
            return model

        model = run(scenario)

        assert model.tasks == {}
        assert model.pending["task"] == set()

    def test_move_task_reloads(self, run):
        async def scenario(model, transport):
            task = await model.create_task({"title": "Card"})
            moved = await model.move_task(task["id"], "progress")
            return moved, model

        moved, model = run(scenario)

        assert moved["status"] == "progress"
        assert [t["title"] for t in model.tasks_by_status("progress")] == ["Card"]


class TestLoad:
    """Reloading from the server and falling back to the mirror."""

    def test_replaces_local_state(self, run, database):
        database.query(
            "INSERT INTO tasks (id, user_id, title) VALUES ($1, $2, $3)",
            ["server-side", "default", "From elsewhere"],
        )

        async def scenario(model, transport):
            assert await model.load() is True
            return model

        model = run(scenario)

        assert list(model.tasks) == ["server-side"]

    def test_unreachable_server_keeps_local_state(self, run):
        async def scenario(model, transport):
            task = await model.create_task({"title": "Local"})
            transport.failures.append("drop")
            loaded = await model.load()
            return loaded, task, model

        loaded, task, model = run(scenario)

        assert loaded is False
        assert list(model.tasks) == [task["id"]]

    def test_restores_from_mirror(self, run, mirror):
        async def first(model, transport):
            transport.failures.append("500")
            return await model.create_task({"title": "Survives restart"})

        local = run(first)

        async def second(model, transport):
            return model

        model = run(second)

        assert model.tasks[local["id"]]["title"] == "Survives restart"
        assert model.pending["task"] == {local["id"]}


class TestEvents:
    """Calendar events through the sync model."""

    def test_events_on_tolerates_timestamp_dates(self, run):
        async def scenario(model, transport):
            synced = await model.create_event(
                {"title": "Picnic", "date": "2025-08-31T04:00:00.000Z", "allDay": True}
            )
            transport.failures.append("500")
            local = await model.create_event(
                {"title": "Unsynced", "date": "2025-08-31T22:00:00.000Z"}
            )
            return synced, local, model

        synced, local, model = run(scenario)

        assert synced["date"] == "2025-08-31"
        titles = {e["title"] for e in model.events_on("2025-08-31")}
        assert titles == {"Picnic", "Unsynced"}
        assert model.events_on("2025-09-01") == []

    def test_update_and_delete_event(self, run):
        async def scenario(model, transport):
            event = await model.create_event({"title": "Standup", "date": "2025-09-01"})
            updated = await model.update_event(event["id"], {"location": "Room 4"})
            await model.delete_event(event["id"])
            return updated, model

        updated, model = run(scenario)

        assert updated["location"] == "Room 4"
        assert model.events == {}


class TestMirrorContents:
    """The mirror always reflects the in-memory collections."""

    def test_mirror_written_after_each_mutation(self, run, mirror):
        async def scenario(model, transport):
            await model.create_task({"id": "A", "title": "One"})
            await model.create_event({"id": "E", "title": "Two", "date": "2025-09-01"})
            return None

        run(scenario)
        data = json.loads(mirror.path.read_text())

        assert [t["id"] for t in data["tasks"]] == ["A"]
        assert [e["id"] for e in data["events"]] == ["E"]
        assert data["pendingTasks"] == []

    def test_wrong_shape_mirror_is_discarded(self, run, mirror):
        """Valid JSON with unusable records restores as empty."""
        mirror.path.write_text(
            json.dumps(
                {
                    "tasks": [{"id": ["x"]}, {"id": 7}, "junk", {"id": "ok", "title": "Kept"}],
                    "pendingTasks": [{"a": 1}, ["ok"], "ok", "missing"],
                    "events": {"not": "a list"},
                    "pendingEvents": "nope",
                }
            ),
            encoding="utf-8",
        )

        async def scenario(model, transport):
            return model

        model = run(scenario)

        assert list(model.tasks) == ["ok"]
        assert model.pending == {"task": {"ok"}, "event": set()}
        assert model.events == {}


class TestConcurrency:
    """Interleaved operations on the same model."""

    def test_load_during_deferred_create_keeps_record(self, run, mirror):
        """A reload that lands while a create is in flight does not lose it."""

        async def scenario(model, transport):
            transport.failures.append("hold")
            create = asyncio.create_task(model.create_task({"id": "OFF1", "title": "Offline"}))
            await transport.holding.wait()

            assert await model.load() is True
            transport.release.set()
            record = await create
            return record, model

        record, model = run(scenario)

        assert record["id"] == "OFF1"
        assert model.tasks["OFF1"]["title"] == "Offline"
        assert model.pending["task"] == {"OFF1"}
        assert mirror.load()["pendingTasks"] == ["OFF1"]

    def test_record_locks_are_released(self, run):
        async def scenario(model, transport):
            task = await model.create_task({"title": "One"})
            await asyncio.gather(
                model.update_task(task["id"], {"status": "progress"}),
                model.update_task(task["id"], {"status": "completed"}),
            )
            await model.delete_task(task["id"])
            return model

        model = run(scenario)

        assert model._locks == {}

    def test_move_task_gone_after_reload(self, run):
        async def scenario(model, transport):
            task = await model.create_task({"title": "Card"})

            async def reload_without_task():
                model.tasks.pop(task["id"], None)
                return True

            with patch.object(model, "load", side_effect=reload_without_task):
                with pytest.raises(SyncError) as excinfo:
                    await model.move_task(task["id"], "completed")
            return excinfo.value

        assert run(scenario).status_code == 404
