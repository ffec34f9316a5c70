"""
Ownership scoping for projects and tasks.

A project belongs to exactly one user and a task belongs to the owner of its
project. Every lookup of an existing resource goes through the resolvers in
this module. They answer with the resource or None, and None covers both
"does not exist" and "belongs to someone else": callers turn it into a 404
without any further existence check.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, contains_eager

from models import Project, Task

logger = logging.getLogger(__name__)


def resolve_owned_project(db: Session, user_id: int, project_id: int) -> Optional[Project]:
    """
    Return the project if it is owned by the user, otherwise None.

    Ownership is part of the query itself, so a foreign project is never
    loaded into the session.
    """
    return (
        db.query(Project)
        .filter(Project.id == project_id, Project.owner_id == user_id)
        .first()
    )


def resolve_owned_task(db: Session, user_id: int, task_id: int) -> Optional[Task]:
    """
    Return the task if its parent project is owned by the user, otherwise None.

    The task and its parent project are fetched in one joined query; the
    task's own columns never take part in the ownership decision.
    """
    return (
        db.query(Task)
        .join(Task.project)
        .options(contains_eager(Task.project))
        .filter(Task.id == task_id, Project.owner_id == user_id)
        .first()
    )


def require_owned_project(db: Session, user_id: int, project_id: int) -> Project:
    """
    Resolve an owned project or raise 404.

    Raises:
        HTTPException: 404 if the project does not exist or is not owned by the user

    Example:
        >>> project = require_owned_project(db, current_user.id, project_id)
    """
    project = resolve_owned_project(db, user_id, project_id)
    if project is None:
        logger.info(f"Project {project_id} not found for user {user_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


def require_owned_task(db: Session, user_id: int, task_id: int) -> Task:
    """
    Resolve an owned task or raise 404.

    Raises:
        HTTPException: 404 if the task does not exist or its project is not owned by the user
    """
    task = resolve_owned_task(db, user_id, task_id)
    if task is None:
        logger.info(f"Task {task_id} not found for user {user_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task
