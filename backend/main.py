from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import APIRouter, FastAPI, Depends, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import Settings
from database import Base, create_db_engine, create_session_factory, get_db
import models
import schemas
import queries
from auth.routes import router as auth_router
from auth.dependencies import get_current_user
from auth.permissions import require_owned_project, require_owned_task

logger = logging.getLogger(__name__)

router = APIRouter()


# Health check
@router.get("/health")
def health_check():
    return {"status": "ok"}


# ============== Dashboard ==============

@router.get("/dashboard/summary", response_model=schemas.DashboardSummary)
def get_dashboard_summary(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Project and task counts for the current user's projects."""
    logger.debug(f"User {current_user.id} requesting dashboard summary")

    counts = queries.dashboard_summary(db, current_user.id)
    return {
        "project_count": counts.project_count,
        "task_count": counts.task_count,
        "by_status": {"todo": counts.todo, "doing": counts.doing, "done": counts.done},
    }


# ============== Projects ==============

@router.get("/projects", response_model=schemas.Paginated[schemas.Project])
def list_projects(
    current_user: models.User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    page_size: int = Query(queries.PROJECTS_PAGE_SIZE, ge=1, le=queries.MAX_PAGE_SIZE, alias="pageSize"),
    search: Optional[str] = Query(None, description="Case-insensitive match on name or description"),
    archived: queries.ArchivedFilter = Query("false", description="all, true or false"),
    db: Session = Depends(get_db)
):
    """List the current user's projects, newest first."""
    logger.debug(f"User {current_user.id} listing projects: page={page}, page_size={page_size}, search={search}, archived={archived}")

    query = queries.project_list_query(db, current_user.id, archived=archived, search=search)
    result = queries.paginate(query, page, page_size)

    logger.info(f"User {current_user.id} retrieved {len(result.items)} of {result.total} projects")
    return result


@router.post("/projects", response_model=schemas.Project, status_code=status.HTTP_201_CREATED)
def create_project(
    project: schemas.ProjectCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a project owned by the current user."""
    logger.debug(f"User {current_user.id} creating project: {project.name}")

    db_project = models.Project(**project.model_dump(), owner_id=current_user.id)
    db.add(db_project)
    db.commit()
    db.refresh(db_project)

    logger.info(f"Project created: {db_project.name} (ID: {db_project.id}) by user {current_user.id}")
    return db_project


@router.get("/projects/{project_id}", response_model=schemas.Project)
def get_project(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get one of the current user's projects."""
    logger.debug(f"User {current_user.id} requesting project {project_id}")
    return require_owned_project(db, current_user.id, project_id)


@router.patch("/projects/{project_id}", response_model=schemas.Project)
def update_project(
    project_id: int,
    project_update: schemas.ProjectUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Rename, re-describe, archive or unarchive a project. Only supplied fields change."""
    logger.debug(f"User {current_user.id} updating project {project_id}")

    project = require_owned_project(db, current_user.id, project_id)

    update_data = project_update.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(project, key, value)

    db.commit()
    db.refresh(project)

    logger.info(f"Project updated: {project.name} (ID: {project_id}), fields: {sorted(update_data)}")
    return project


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a project together with all of its tasks in one transaction."""
    logger.debug(f"User {current_user.id} deleting project {project_id}")

    project = require_owned_project(db, current_user.id, project_id)
    project_name = project.name

    try:
        db.delete(project)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(f"Failed to delete project {project_id}, transaction rolled back")
        raise

    logger.info(f"Project deleted: {project_name} (ID: {project_id})")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============== Tasks ==============

@router.get("/projects/{project_id}/tasks", response_model=schemas.Paginated[schemas.Task])
def list_project_tasks(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    page_size: int = Query(queries.TASKS_PAGE_SIZE, ge=1, le=queries.MAX_PAGE_SIZE, alias="pageSize"),
    search: Optional[str] = Query(None, description="Case-insensitive match on title or description"),
    status: Optional[models.TaskStatus] = Query(None),
    priority: Optional[models.TaskPriority] = Query(None),
    db: Session = Depends(get_db)
):
    """List the tasks of one project, newest first."""
    logger.debug(f"User {current_user.id} listing tasks of project {project_id}: status={status}, priority={priority}, search={search}")

    project = require_owned_project(db, current_user.id, project_id)

    filters = queries.TaskFilters(status=status, priority=priority, search=search)
    result = queries.paginate(queries.project_task_query(db, project.id, filters), page, page_size)

    logger.info(f"User {current_user.id} retrieved {len(result.items)} of {result.total} tasks in project {project_id}")
    return result


@router.post("/projects/{project_id}/tasks", response_model=schemas.Task, status_code=status.HTTP_201_CREATED)
def create_task(
    project_id: int,
    task: schemas.TaskCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a task under one of the current user's projects."""
    logger.debug(f"User {current_user.id} creating task in project {project_id}: {task.title}")

    project = require_owned_project(db, current_user.id, project_id)

    db_task = models.Task(**task.model_dump(), project_id=project.id)
    db.add(db_task)
    db.commit()
    db.refresh(db_task)

    logger.info(f"Task created: {db_task.title} (ID: {db_task.id}) in project {project.id}")
    return db_task


@router.get("/tasks", response_model=schemas.Paginated[schemas.TaskWithProject])
def list_tasks(
    current_user: models.User = Depends(get_current_user),
    project_id: Optional[int] = Query(None, alias="projectId"),
    search: Optional[str] = Query(None, description="Case-insensitive match on title, description or project name"),
    status: Optional[models.TaskStatus] = Query(None),
    priority: Optional[models.TaskPriority] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(queries.TASKS_PAGE_SIZE, ge=1, le=queries.MAX_PAGE_SIZE, alias="pageSize"),
    db: Session = Depends(get_db)
):
    """List tasks across all of the current user's projects, each with its project id and name."""
    logger.debug(f"User {current_user.id} listing tasks: project={project_id}, status={status}, priority={priority}, search={search}")

    filters = queries.TaskFilters(status=status, priority=priority, search=search)
    query = queries.owner_task_query(db, current_user.id, filters, project_id=project_id)
    result = queries.paginate(query, page, page_size)

    logger.info(f"list_tasks completed successfully: returned {len(result.items)} of {result.total} tasks")
    return result


@router.get("/tasks/{task_id}", response_model=schemas.TaskWithProject)
def get_task(
    task_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get one task of the current user."""
    logger.debug(f"User {current_user.id} requesting task {task_id}")
    return require_owned_task(db, current_user.id, task_id)


@router.patch("/tasks/{task_id}", response_model=schemas.Task)
def update_task(
    task_id: int,
    task_update: schemas.TaskUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update a task. Only supplied fields change; description and dueDate accept null to clear."""
    logger.debug(f"User {current_user.id} updating task {task_id}")

    task = require_owned_task(db, current_user.id, task_id)

    update_data = task_update.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(task, key, value)

    db.commit()
    db.refresh(task)

    logger.info(f"Task updated: {task.title} (ID: {task_id}), fields: {sorted(update_data)}")
    return task


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a task."""
    logger.debug(f"User {current_user.id} deleting task {task_id}")

    task = require_owned_task(db, current_user.id, task_id)
    task_title = task.title
    db.delete(task)
    db.commit()

    logger.info(f"Task deleted: {task_title} (ID: {task_id})")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============== Error handling ==============

def _issue_field(loc) -> str:
    parts = [str(part) for part in loc]
    if len(parts) > 1 and parts[0] in ("body", "query", "path", "header"):
        parts = parts[1:]
    return ".".join(parts)


async def invalid_payload_handler(request: Request, exc: RequestValidationError):
    issues = [
        schemas.ValidationIssue(
            field=_issue_field(error.get("loc", ())),
            message=error.get("msg", ""),
            type=error.get("type", ""),
        )
        for error in exc.errors()
    ]
    logger.info(f"Invalid payload for {request.method} {request.url.path}: {[issue.field for issue in issues]}")
    body = schemas.ErrorResponse(detail="Invalid payload", issues=issues)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())


async def internal_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    body = schemas.ErrorResponse(detail="Internal server error")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(exclude={"issues"}),
    )


# ============== Application factory ==============

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Explicit configuration; loaded from the environment when omitted

    Returns:
        Configured FastAPI app with its own database engine and session factory
    """
    if settings is None:
        settings = Settings()

    logging.basicConfig(level=settings.log_level)

    engine = create_db_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.create_tables:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables ensured")
        yield
        engine.dispose()

    app = FastAPI(
        title="Project Tracker API",
        description="Projects, tasks and a dashboard scoped to the authenticated user",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    # CORS middleware for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, invalid_payload_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    app.include_router(auth_router)
    app.include_router(router)

    logger.info(f"Application created (environment: {settings.environment})")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=app.state.settings.api_host, port=app.state.settings.api_port)
