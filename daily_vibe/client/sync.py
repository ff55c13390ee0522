"""Client sync model: optimistic in-memory collections kept consistent with the server.

Every mutation follows the same protocol:
1. Apply optimistically to the in-memory collection and the local mirror
2. Send the matching HTTP request (one in flight per entity id)
3. Reconcile: on 2xx adopt the server's canonical record, otherwise roll
   back and raise :class:`SyncError`

Creates carry a client-generated id, so the server treats a retried create
as an upsert. A create that fails with a 5xx or never reaches the server is
kept and marked pending; the next mutation of that record resends it as a
create, and :meth:`TaskSyncModel.load` carries it over until then.
"""

import asyncio
import logging
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from uuid import uuid4

import httpx

from daily_vibe.client.mirror import LocalMirror
from daily_vibe.models.base import DEFAULT_USER_ID
from daily_vibe.services.events import event_date_prefix

logger = logging.getLogger(__name__)

# entity -> (collection path, record key, list and mirror key, pending mirror key)
ENTITIES = {
    "task": ("/api/tasks", "task", "tasks", "pendingTasks"),
    "event": ("/api/events", "event", "events", "pendingEvents"),
}


class SyncError(Exception):
    """Raised when the server rejected a mutation and it was rolled back."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class _Deferred(Exception):
    """The server could not take the write now; a retry may succeed."""


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class TaskSyncModel:
    """In-memory task and event collections with server dual-write.

    Args:
        client: HTTP client whose ``base_url`` points at the API
        mirror: Local persistent mirror
        user_id: Scoping user id sent when no token is set
        token: Optional bearer token
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        mirror: LocalMirror,
        user_id: str = DEFAULT_USER_ID,
        token: str | None = None,
    ) -> None:
        self.client = client
        self.mirror = mirror
        self.user_id = user_id
        self.token = token
        self.tasks: dict[str, dict[str, Any]] = {}
        self.events: dict[str, dict[str, Any]] = {}
        self.pending: dict[str, set[str]] = {"task": set(), "event": set()}
        self._locks: dict[tuple[str, str], _LockEntry] = {}
        self._restore()

    # -- local state --------------------------------------------------------

    def _collection(self, entity: str) -> dict[str, dict[str, Any]]:
        return self.tasks if entity == "task" else self.events

    def _restore(self) -> None:
        data = self.mirror.load()
        for entity, (_, _, key, pending_key) in ENTITIES.items():
            records = data.get(key)
            collection = self._collection(entity)
            if isinstance(records, list):
                collection.update(
                    (r["id"], r)
                    for r in records
                    if isinstance(r, dict) and isinstance(r.get("id"), str) and r["id"]
                )
            pending = data.get(pending_key)
            if isinstance(pending, list):
                # Ids with no restored record are dropped with the bad records
                self.pending[entity] = {
                    p for p in pending if isinstance(p, str) and p in collection
                }

    def _persist(self) -> None:
        data: dict[str, Any] = {}
        for entity, (_, _, key, pending_key) in ENTITIES.items():
            data[key] = list(self._collection(entity).values())
            data[pending_key] = sorted(self.pending[entity])
        self.mirror.save(data)

    @asynccontextmanager
    async def _lock(self, entity: str, record_id: str) -> AsyncIterator[None]:
        """Hold the per-record lock. The entry is dropped once nobody uses it."""
        key = (entity, record_id)
        entry = self._locks.setdefault(key, _LockEntry())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    # -- transport ----------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def _send(self, method: str, url: str, **kwargs) -> dict[str, Any]:
        """Send one request and return its JSON body.

        Raises:
            _Deferred: On a transport failure or a 5xx answer
            SyncError: On a 4xx answer
        """
        try:
            response = await self.client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TransportError as exc:
            raise _Deferred(str(exc)) from exc

        if response.status_code >= 500:
            raise _Deferred(_error_message(response))
        if response.status_code >= 400:
            raise SyncError(_error_message(response), response.status_code)
        return response.json()

    async def _create_remote(self, entity: str, record: dict[str, Any]) -> dict[str, Any]:
        path, key, _, _ = ENTITIES[entity]
        body = {**record, "user_id": record.get("user_id") or self.user_id}
        return (await self._send("POST", path, json=body))[key]

    # -- mutations ----------------------------------------------------------

    async def _create(self, entity: str, fields: dict[str, Any]) -> dict[str, Any]:
        record_id = fields.get("id") or uuid4().hex
        record = {**fields, "id": record_id, "user_id": self.user_id}
        collection = self._collection(entity)

        async with self._lock(entity, record_id):
            collection[record_id] = record
            self._persist()

            try:
                canonical = await self._create_remote(entity, record)
            except _Deferred as exc:
                # A concurrent load() may have dropped the optimistic copy
                collection[record_id] = record
                self.pending[entity].add(record_id)
                self._persist()
                logger.warning(
                    "Create deferred; kept locally",
                    extra={"entity": entity, "id": record_id, "error": str(exc)},
                )
                return record
            except SyncError:
                collection.pop(record_id, None)
                self._persist()
                raise

            collection[record_id] = canonical
            self.pending[entity].discard(record_id)
            self._persist()
            return canonical

    async def _update(
        self, entity: str, record_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        path, key, _, _ = ENTITIES[entity]
        collection = self._collection(entity)

        async with self._lock(entity, record_id):
            previous = collection.get(record_id)
            if previous is None:
                raise SyncError(f"Unknown {entity}: {record_id}", 404)

            merged = {**previous, **changes}
            collection[record_id] = merged
            self._persist()

            if record_id in self.pending[entity]:
                return await self._resend_pending(entity, record_id, previous, merged)

            try:
                canonical = (
                    await self._send(
                        "PUT", f"{path}/{record_id}", json=changes, params={"userId": self.user_id}
                    )
                )[key]
            except (_Deferred, SyncError) as exc:
                collection[record_id] = previous
                self._persist()
                if isinstance(exc, SyncError):
                    raise
                raise SyncError(str(exc)) from exc

            collection[record_id] = canonical
            self._persist()
            return canonical

    async def _resend_pending(
        self,
        entity: str,
        record_id: str,
        previous: dict[str, Any],
        merged: dict[str, Any],
    ) -> dict[str, Any]:
        collection = self._collection(entity)
        try:
            canonical = await self._create_remote(entity, merged)
        except _Deferred:
            # Still unconfirmed; the merged record stays pending
            return merged
        except SyncError:
            collection[record_id] = previous
            self._persist()
            raise

        collection[record_id] = canonical
        self.pending[entity].discard(record_id)
        self._persist()
        return canonical

    async def _delete(self, entity: str, record_id: str) -> None:
        path, _, _, _ = ENTITIES[entity]
        collection = self._collection(entity)

        async with self._lock(entity, record_id):
            previous = collection.pop(record_id, None)
            if previous is None:
                raise SyncError(f"Unknown {entity}: {record_id}", 404)
            was_pending = record_id in self.pending[entity]
            self.pending[entity].discard(record_id)
            self._persist()

            try:
                await self._send("DELETE", f"{path}/{record_id}", params={"userId": self.user_id})
            except SyncError as exc:
                # A pending record may never have reached the server
                if was_pending and exc.status_code == 404:
                    return
                self._restore_deleted(entity, previous, was_pending)
                raise
            except _Deferred as exc:
                self._restore_deleted(entity, previous, was_pending)
                raise SyncError(str(exc)) from exc

    def _restore_deleted(self, entity: str, record: dict[str, Any], was_pending: bool) -> None:
        self._collection(entity)[record["id"]] = record
        if was_pending:
            self.pending[entity].add(record["id"])
        self._persist()

    # -- public API ---------------------------------------------------------

    async def create_task(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Create a task. Returns the canonical record, or the local one if deferred."""
        return await self._create("task", fields)

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        return await self._update("task", task_id, changes)

    async def delete_task(self, task_id: str) -> None:
        await self._delete("task", task_id)

    async def move_task(self, task_id: str, status: str) -> dict[str, Any]:
        """Move a task to another board column, then refresh from the server."""
        await self._update("task", task_id, {"status": status})
        await self.load()
        task = self.tasks.get(task_id)
        if task is None:
            raise SyncError(f"Task {task_id} no longer exists", 404)
        return task

    async def create_event(self, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._create("event", fields)

    async def update_event(self, event_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        return await self._update("event", event_id, changes)

    async def delete_event(self, event_id: str) -> None:
        await self._delete("event", event_id)

    async def load(self) -> bool:
        """Replace both collections with the server's view.

        Pending records the server has not seen yet are kept. When the
        server cannot be reached the current local state stays in place.

        Returns:
            bool: True if the server answered, False on fallback
        """
        try:
            fetched = {
                entity: (await self._send("GET", path, params={"userId": self.user_id}))[list_key]
                for entity, (path, _, list_key, _) in ENTITIES.items()
            }
        except (_Deferred, SyncError) as exc:
            logger.warning("Reload failed; using local mirror", extra={"error": str(exc)})
            return False

        for entity, records in fetched.items():
            collection = self._collection(entity)
            server_view = {record["id"]: record for record in records}
            for record_id in list(self.pending[entity]):
                if record_id in server_view:
                    # The create landed even though its response was lost
                    self.pending[entity].discard(record_id)
                elif record_id in collection:
                    server_view[record_id] = collection[record_id]
            collection.clear()
            collection.update(server_view)

        self._log_duplicate_titles()
        self._persist()
        return True

    def _log_duplicate_titles(self) -> None:
        counts = Counter(task.get("title") for task in self.tasks.values())
        for title, count in counts.items():
            if count > 1:
                logger.warning("Duplicate task title", extra={"title": title, "count": count})

    def tasks_by_status(self, status: str) -> list[dict[str, Any]]:
        return [task for task in self.tasks.values() if task.get("status") == status]

    def events_on(self, day: str | date | datetime) -> list[dict[str, Any]]:
        """Events dated on ``day``, whether stored as a date or a full timestamp."""
        prefix = event_date_prefix(day)
        return [
            event
            for event in self.events.values()
            if event.get("date") and event_date_prefix(str(event["date"])) == prefix
        ]


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"
