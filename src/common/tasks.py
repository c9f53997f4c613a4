"""Helpers for dispatching Celery tasks as best-effort side effects."""

import typing as t

import structlog
from celery import Task
from django.db import transaction

logger = structlog.get_logger(__name__)


def dispatch_on_commit(task: Task, **kwargs: t.Any) -> None:
    """Queue ``task`` once the current transaction commits.

    Outside a transaction the task is queued immediately. A broker failure is logged and
    never reaches the caller.
    """

    def _send() -> None:
        try:
            task.delay(**kwargs)
        except Exception:
            logger.exception("task_dispatch_failed", task_name=task.name, **kwargs)

    transaction.on_commit(_send)
