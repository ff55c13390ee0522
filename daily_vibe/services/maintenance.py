"""Operator maintenance routines. Never invoked by request handlers."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from sqlmodel import Session, select

from daily_vibe.models.task import Task
from daily_vibe.services.attachments import remove_task_links, sweep_orphan_attachments

logger = logging.getLogger(__name__)

__all__ = ["DuplicateCleanupResult", "cleanup_duplicate_tasks", "sweep_orphan_attachments"]


@dataclass
class DuplicateCleanupResult:
    """Outcome of a duplicate-task cleanup run."""

    total_tasks: int = 0
    duplicate_groups: int = 0
    deleted_ids: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)

    @property
    def remaining_tasks(self) -> int:
        return self.total_tasks - self.deleted_count


def cleanup_duplicate_tasks(session: Session, dry_run: bool = False) -> DuplicateCleanupResult:
    """Keep only the newest task per ``(user_id, title)``.

    Older copies are deleted along with their attachment links. With
    ``dry_run`` nothing is written; the result lists what would go.
    """
    tasks = session.exec(select(Task)).all()
    result = DuplicateCleanupResult(total_tasks=len(tasks), dry_run=dry_run)

    groups: dict[tuple[str, str], list[Task]] = defaultdict(list)
    for task in tasks:
        groups[(task.user_id, task.title)].append(task)

    for (user_id, title), members in groups.items():
        if len(members) < 2:
            continue
        result.duplicate_groups += 1

        members.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        for task in members[1:]:
            result.deleted_ids.append(task.id)
            logger.info(
                "Duplicate task %s",
                "found" if dry_run else "deleted",
                extra={"task_id": task.id, "user_id": user_id, "title": title},
            )
            if not dry_run:
                remove_task_links(session, task.id)
                session.delete(task)

    if not dry_run:
        session.commit()

    logger.info(
        "Duplicate cleanup complete",
        extra={
            "groups": result.duplicate_groups,
            "deleted": result.deleted_count,
            "dry_run": dry_run,
        },
    )
    return result
