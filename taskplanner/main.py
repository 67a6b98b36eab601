import uuid
from time import perf_counter

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from . import auth, config, database, errors, models, schemas, tasks
from .access import Actor
from .dates import isoformat_utc, utcnow
from .database import get_db
from .log import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)

models.Base.metadata.create_all(bind=database.engine)

REQUEST_ID_HEADER = "X-Request-ID"

app = FastAPI(title="Task Planner API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)
errors.install_error_handling(app)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip() or str(uuid.uuid4())
    request.state.request_id = request_id
    started = perf_counter()
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    logger.info(
        "%s %s -> %s in %.1fms [%s]",
        request.method,
        request.url.path,
        response.status_code,
        (perf_counter() - started) * 1000,
        request_id,
    )
    return response


def task_filters(request: Request) -> schemas.TaskFilter:
    try:
        return schemas.TaskFilter.model_validate(dict(request.query_params))
    except PydanticValidationError as exc:
        raise errors.validation_error_from(exc, "Validation error in query parameters")


def _task_out(task: models.Task) -> schemas.TaskOut:
    return schemas.TaskOut.model_validate(task)


# AUTH
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.post("/register", response_model=schemas.Envelope[schemas.AuthData], status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    data = auth.register_user(db, user)
    return schemas.Envelope[schemas.AuthData](message="User registered successfully", data=data)


@auth_router.post("/login", response_model=schemas.Envelope[schemas.AuthData])
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    data = auth.authenticate_user(db, payload.email, payload.password)
    return schemas.Envelope[schemas.AuthData](message="Login successful", data=data)


@auth_router.get("/profile", response_model=schemas.Envelope[schemas.ProfileData])
def profile(actor: Actor = Depends(auth.get_current_actor), db: Session = Depends(get_db)):
    user = auth.get_profile(db, actor)
    data = schemas.ProfileData(user=schemas.UserOut.model_validate(user))
    return schemas.Envelope[schemas.ProfileData](message="Profile retrieved successfully", data=data)


@auth_router.put("/update-password", response_model=schemas.Message)
def update_password(
    payload: schemas.PasswordUpdate,
    actor: Actor = Depends(auth.get_current_actor),
    db: Session = Depends(get_db),
):
    auth.update_password(db, actor, payload)
    return schemas.Message(message="Password updated successfully")


# TASKS
task_router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@task_router.post("", response_model=schemas.Envelope[schemas.TaskData], status_code=status.HTTP_201_CREATED)
def create_task(
    payload: schemas.TaskCreate,
    actor: Actor = Depends(auth.get_current_actor),
    db: Session = Depends(get_db),
):
    task = tasks.create_task(db, actor, payload)
    return schemas.Envelope[schemas.TaskData](
        message="Task created successfully", data=schemas.TaskData(task=_task_out(task))
    )


def _list_response(db: Session, actor: Actor, filters: schemas.TaskFilter):
    found, pagination = tasks.list_tasks(db, actor, filters)
    data = schemas.TaskListData(tasks=[_task_out(t) for t in found], pagination=pagination)
    return schemas.Envelope[schemas.TaskListData](message="Tasks retrieved successfully", data=data)


@task_router.get("", response_model=schemas.Envelope[schemas.TaskListData])
def list_tasks(
    actor: Actor = Depends(auth.get_current_actor),
    filters: schemas.TaskFilter = Depends(task_filters),
    db: Session = Depends(get_db),
):
    return _list_response(db, actor, filters)


@task_router.get("/admin/all", response_model=schemas.Envelope[schemas.TaskListData])
def list_all_tasks(
    actor: Actor = Depends(auth.require_admin),
    filters: schemas.TaskFilter = Depends(task_filters),
    db: Session = Depends(get_db),
):
    return _list_response(db, actor, filters)


@task_router.get("/dashboard/{date}", response_model=schemas.Envelope[schemas.DayTasksData])
def tasks_for_date(date: str, actor: Actor = Depends(auth.get_current_actor), db: Session = Depends(get_db)):
    found, day = tasks.list_tasks_for_date(db, actor, date)
    data = schemas.DayTasksData(tasks=[_task_out(t) for t in found], date=isoformat_utc(day), formatted_date=date)
    return schemas.Envelope[schemas.DayTasksData](message=f"Tasks for {date} retrieved successfully", data=data)


@task_router.post(
    "/create/{date}",
    response_model=schemas.Envelope[schemas.DatedTaskData],
    status_code=status.HTTP_201_CREATED,
)
def create_task_for_date(
    date: str,
    payload: schemas.TaskCreate,
    actor: Actor = Depends(auth.get_current_actor),
    db: Session = Depends(get_db),
):
    task, day = tasks.create_task_for_date(db, actor, date, payload)
    data = schemas.DatedTaskData(task=_task_out(task), date=isoformat_utc(day), formatted_date=date)
    return schemas.Envelope[schemas.DatedTaskData](message=f"Task created successfully for {date}", data=data)


@task_router.get("/{task_id}", response_model=schemas.Envelope[schemas.TaskData])
def get_task(task_id: str, actor: Actor = Depends(auth.get_current_actor), db: Session = Depends(get_db)):
    task = tasks.get_task(db, actor, task_id)
    return schemas.Envelope[schemas.TaskData](
        message="Task retrieved successfully", data=schemas.TaskData(task=_task_out(task))
    )


@task_router.put("/{task_id}", response_model=schemas.Envelope[schemas.TaskData])
def update_task(
    task_id: str,
    payload: schemas.TaskUpdate,
    actor: Actor = Depends(auth.get_current_actor),
    db: Session = Depends(get_db),
):
    task = tasks.update_task(db, actor, task_id, payload)
    return schemas.Envelope[schemas.TaskData](
        message="Task updated successfully", data=schemas.TaskData(task=_task_out(task))
    )


@task_router.delete("/{task_id}", response_model=schemas.Message)
def delete_task(task_id: str, actor: Actor = Depends(auth.get_current_actor), db: Session = Depends(get_db)):
    tasks.delete_task(db, actor, task_id)
    return schemas.Message(message="Task deleted successfully")


# HEALTH
@app.get("/health", response_model=schemas.HealthStatus, tags=["health"])
@app.get("/api/health", response_model=schemas.HealthStatus, tags=["health"])
def health():
    return schemas.HealthStatus(timestamp=isoformat_utc(utcnow()))


app.include_router(auth_router)
app.include_router(task_router)
