"""
Listing queries: ownership scope, filters, search, ordering and pagination.

Every list endpoint builds its query here. Filters are AND-combined and each
one is optional: a parameter that was not supplied adds no constraint. Counts
and item pages are read independently, so under concurrent writes `total`
may be slightly out of step with `items`.
"""

import logging
import math
from dataclasses import dataclass
from typing import Generic, List, Literal, Optional, TypeVar

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session, contains_eager

from models import Project, Task, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_PAGE_SIZE = 100
PROJECTS_PAGE_SIZE = 12
TASKS_PAGE_SIZE = 24

ArchivedFilter = Literal["all", "true", "false"]


class Page(Generic[T]):
    """One page of a scoped result set plus the size of the whole set."""

    def __init__(self, items: List[T], total: int, page: int, page_size: int):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.page_size)


def total_pages(total: int, page_size: int) -> int:
    """Number of pages for `total` rows; an empty set still has one page."""
    return max(1, math.ceil(total / page_size))


def page_offset(page: int, page_size: int) -> int:
    return (page - 1) * page_size


def paginate(query: Query, page: int, page_size: int) -> Page:
    """
    Run `query` as a count plus one page of rows.

    Pages past the end return no items but still report the full total.

    Args:
        query: Scoped, filtered and ordered query
        page: 1-based page number
        page_size: Rows per page (1..MAX_PAGE_SIZE)

    Raises:
        ValueError: If page or page_size is out of range
    """
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}")

    total = query.order_by(None).count()
    offset = page_offset(page, page_size)
    # Past the last row; the offset may not even fit in a database integer
    if offset >= total:
        items = []
    else:
        items = query.offset(offset).limit(page_size).all()
    logger.debug(f"Paginated query: page={page}, page_size={page_size}, total={total}, returned={len(items)}")
    return Page(items=items, total=total, page=page, page_size=page_size)


def normalize_search(search: Optional[str]) -> Optional[str]:
    """Trim a search term; blank terms mean "no search filter"."""
    if search is None:
        return None
    search = search.strip()
    return search or None


def _like_pattern(term: str) -> str:
    # LIKE wildcards typed by the user are matched literally
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _search_clause(term: str, *columns):
    pattern = _like_pattern(term)
    return or_(*[column.ilike(pattern, escape="\\") for column in columns])


# ============== Projects ==============

def project_list_query(
    db: Session,
    owner_id: int,
    archived: ArchivedFilter = "false",
    search: Optional[str] = None,
) -> Query:
    """
    Build the project listing query for one owner.

    Args:
        owner_id: Authenticated user id (base scope)
        archived: "true"/"false" add an equality filter, "all" adds none
        search: Case-insensitive substring matched against name or description

    Returns:
        Query ordered newest first
    """
    query = db.query(Project).filter(Project.owner_id == owner_id)

    if archived == "true":
        query = query.filter(Project.archived.is_(True))
    elif archived == "false":
        query = query.filter(Project.archived.is_(False))
    elif archived != "all":
        raise ValueError(f"archived must be one of all, true, false; got {archived!r}")

    search = normalize_search(search)
    if search:
        query = query.filter(_search_clause(search, Project.name, Project.description))

    return query.order_by(Project.created_at.desc(), Project.id.desc())


# ============== Tasks ==============

@dataclass(frozen=True)
class TaskFilters:
    """Optional task filters shared by the per-project and cross-project listings."""
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    search: Optional[str] = None


def _apply_task_filters(query: Query, filters: TaskFilters, *search_columns) -> Query:
    if filters.status is not None:
        query = query.filter(Task.status == filters.status)
    if filters.priority is not None:
        query = query.filter(Task.priority == filters.priority)

    search = normalize_search(filters.search)
    if search:
        query = query.filter(_search_clause(search, *search_columns))

    return query.order_by(Task.created_at.desc(), Task.id.desc())


def project_task_query(db: Session, project_id: int, filters: TaskFilters) -> Query:
    """
    Tasks of one project. The caller must have resolved the project as owned
    before calling this; the query itself is scoped by project id only.

    Search matches title or description.
    """
    query = db.query(Task).filter(Task.project_id == project_id)
    return _apply_task_filters(query, filters, Task.title, Task.description)


def owner_task_query(
    db: Session,
    owner_id: int,
    filters: TaskFilters,
    project_id: Optional[int] = None,
) -> Query:
    """
    Tasks across every project of one owner, each with its parent project loaded.

    Search matches title, description or the parent project's name. A
    project_id that is not owned by the user simply yields no rows.
    """
    query = (
        db.query(Task)
        .join(Task.project)
        .options(contains_eager(Task.project))
        .filter(Project.owner_id == owner_id)
    )
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)

    return _apply_task_filters(query, filters, Task.title, Task.description, Project.name)


# ============== Dashboard ==============

@dataclass
class DashboardCounts:
    project_count: int
    task_count: int
    todo: int
    doing: int
    done: int


def dashboard_summary(db: Session, owner_id: int) -> DashboardCounts:
    """
    Count the owner's active projects and their tasks by status.

    Project count excludes archived projects; task counts cover every project
    the user owns. Task counts come from one grouped query over the same
    ownership predicate, so the per-status counts always add up to the total.
    """
    project_count = (
        db.query(func.count(Project.id))
        .filter(Project.owner_id == owner_id, Project.archived.is_(False))
        .scalar()
    )

    rows = (
        db.query(Task.status, func.count(Task.id))
        .join(Task.project)
        .filter(Project.owner_id == owner_id)
        .group_by(Task.status)
        .all()
    )
    by_status = {status: count for status, count in rows}

    counts = DashboardCounts(
        project_count=project_count or 0,
        task_count=sum(by_status.values()),
        todo=by_status.get(TaskStatus.TODO, 0),
        doing=by_status.get(TaskStatus.DOING, 0),
        done=by_status.get(TaskStatus.DONE, 0),
    )
    logger.debug(f"Dashboard counts for user {owner_id}: {counts}")
    return counts
