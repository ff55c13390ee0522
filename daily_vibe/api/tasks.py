"""Task API endpoints.

Task CRUD is auth-optional: the owner is the session user when a valid
token is sent, otherwise the ``userId`` from the query or body, otherwise
``default``.
"""

from typing import Annotated

from fastapi import APIRouter, Query

from daily_vibe.api.deps import (
    DateRange,
    DBSession,
    TokenUserId,
    UserIdQuery,
    resolve_user_id,
)
from daily_vibe.errors import NotFoundError
from daily_vibe.models.common import MessageEnvelope
from daily_vibe.models.task import (
    TaskCreate,
    TaskEnvelope,
    TaskListEnvelope,
    TaskResponse,
    TaskStatsEnvelope,
    TaskUpdate,
)
from daily_vibe.services.tasks import (
    create_task,
    delete_task,
    get_task_by_id,
    get_task_stats,
    get_tasks_in_range,
    get_user_tasks,
    get_user_tasks_with_attachments,
    update_task,
)

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


@router.post("", response_model=TaskEnvelope)
def create_task_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    task_data: TaskCreate,
) -> TaskEnvelope:
    """Create a task. Re-sending the same client id updates that task."""
    user_id = resolve_user_id(token_user_id, task_data.user_id)
    task = create_task(session, user_id, task_data)
    return TaskEnvelope(task=TaskResponse.model_validate(task))


@router.get("", response_model=TaskListEnvelope)
def list_tasks_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    user_id: UserIdQuery = None,
    status: Annotated[str | None, Query(description="Filter by status")] = None,
    with_attachments: Annotated[bool, Query(alias="withAttachments")] = False,
) -> TaskListEnvelope:
    """List the user's tasks, newest first."""
    user_id = resolve_user_id(token_user_id, user_id)
    if with_attachments:
        tasks = get_user_tasks_with_attachments(session, user_id, status)
    else:
        tasks = [
            TaskResponse.model_validate(t) for t in get_user_tasks(session, user_id, status)
        ]
    return TaskListEnvelope(tasks=tasks)


@router.get("/stats/{user_id}", response_model=TaskStatsEnvelope)
def task_stats_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    user_id: str,
) -> TaskStatsEnvelope:
    """Count the user's tasks per status."""
    stats = get_task_stats(session, resolve_user_id(token_user_id, user_id))
    return TaskStatsEnvelope(stats=stats)


@router.get("/date-range/{user_id}", response_model=TaskListEnvelope)
def tasks_in_range_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    user_id: str,
    date_range: DateRange,
) -> TaskListEnvelope:
    """List the user's tasks due within an inclusive date range."""
    start, end = date_range
    tasks = get_tasks_in_range(session, resolve_user_id(token_user_id, user_id), start, end)
    return TaskListEnvelope(tasks=[TaskResponse.model_validate(t) for t in tasks])


@router.get("/{task_id}", response_model=TaskEnvelope)
def get_task_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    task_id: str,
    user_id: UserIdQuery = None,
) -> TaskEnvelope:
    """Get a specific task by ID."""
    task = get_task_by_id(session, resolve_user_id(token_user_id, user_id), task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return TaskEnvelope(task=TaskResponse.model_validate(task))


@router.put("/{task_id}", response_model=TaskEnvelope)
def update_task_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    task_id: str,
    task_data: TaskUpdate,
    user_id: UserIdQuery = None,
) -> TaskEnvelope:
    """Update the supplied fields of a task."""
    task = update_task(session, resolve_user_id(token_user_id, user_id), task_id, task_data)
    return TaskEnvelope(task=TaskResponse.model_validate(task))


@router.delete("/{task_id}", response_model=MessageEnvelope)
def delete_task_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    task_id: str,
    user_id: UserIdQuery = None,
) -> MessageEnvelope:
    """Delete a task and its attachment links."""
    delete_task(session, resolve_user_id(token_user_id, user_id), task_id)
    return MessageEnvelope(message="Task deleted successfully")
