import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

# our own modules
import models
import schemas
import timer_utils
from database import SessionLocal, engine
from logging_config import configure_logging
from security import require_leader
from services import (
    ActivityLog,
    BossService,
    MemberService,
    NotificationBoard,
    ValidationFailure,
    boss_timer,
    dashboard_summary,
)
from settings import get_settings
from storage import DatabaseStorage, MemoryStorage, PersistenceError

logger = logging.getLogger(__name__)

settings = get_settings()

# process-wide store for LEGION_STORAGE_BACKEND=memory
memory_storage = MemoryStorage()


def bootstrap(storage):
    if settings.seed_default_bosses:
        BossService(storage).seed_defaults()
    if settings.admin_password:
        MemberService(storage, settings=settings).ensure_admin(settings.admin_password)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)

    if settings.storage_backend == "memory":
        bootstrap(memory_storage)
    else:
        # 1. create tables
        models.Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            bootstrap(DatabaseStorage(db))
        finally:
            db.close()

    logger.info("Legion boss tracker ready (storage=%s)", settings.storage_backend)
    yield


app = FastAPI(title="Legion Boss Tracker", lifespan=lifespan)

# 2. CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_api_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %s in %dms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
    return response


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def get_storage():
    if settings.storage_backend == "memory":
        yield memory_storage
        return

    db = SessionLocal()
    try:
        yield DatabaseStorage(db)
    finally:
        db.close()


def get_clock():
    return timer_utils.utcnow


def get_activity_log(storage=Depends(get_storage), clock=Depends(get_clock)):
    return ActivityLog(storage, clock)


def get_boss_service(storage=Depends(get_storage), clock=Depends(get_clock)):
    return BossService(storage, clock=clock)


def get_member_service(storage=Depends(get_storage), clock=Depends(get_clock)):
    return MemberService(storage, clock=clock, settings=settings)


def get_notification_board(storage=Depends(get_storage), clock=Depends(get_clock)):
    return NotificationBoard(storage, clock)


def boss_or_404(boss):
    if boss is None:
        raise HTTPException(status_code=404, detail="Boss not found")
    return boss


def member_or_404(member):
    if member is None:
        raise HTTPException(status_code=404, detail="Member not found")
    return member


# --- API ---

@app.get("/")
def read_root():
    return {"message": "Legion Boss Tracker API is Running! ⏰"}


@app.get("/health", response_class=PlainTextResponse)
def health():
    return "ok"


# 📋 Bosses with their timers
@app.get("/api/bosses", response_model=List[schemas.BossTimer])
def list_bosses(service: BossService = Depends(get_boss_service), clock=Depends(get_clock)):
    now = clock()
    return [boss_timer(boss, now) for boss in service.list()]


@app.get("/api/bosses/summary", response_model=schemas.DashboardSummary)
def bosses_summary(
    bosses: BossService = Depends(get_boss_service),
    members: MemberService = Depends(get_member_service),
    clock=Depends(get_clock),
):
    return dashboard_summary(bosses.list(), members.list(), clock())


@app.get("/api/bosses/{boss_id}", response_model=schemas.BossTimer)
def read_boss(boss_id: str, service: BossService = Depends(get_boss_service), clock=Depends(get_clock)):
    return boss_timer(boss_or_404(service.get(boss_id)), clock())


@app.post("/api/bosses", response_model=schemas.BossTimer, status_code=201)
def create_boss(
    payload: schemas.BossCreate,
    service: BossService = Depends(get_boss_service),
    clock=Depends(get_clock),
    _leader=Depends(require_leader),
):
    return boss_timer(service.create(payload), clock())


@app.post("/api/bosses/batch", response_model=List[schemas.BossTimer], status_code=201)
def create_bosses(
    payload: schemas.BossBatchCreate,
    service: BossService = Depends(get_boss_service),
    clock=Depends(get_clock),
    _leader=Depends(require_leader),
):
    now = clock()
    return [boss_timer(boss, now) for boss in service.create_many(payload.bosses)]


@app.put("/api/bosses/{boss_id}", response_model=schemas.BossTimer)
def update_boss(
    boss_id: str,
    payload: schemas.BossUpdate,
    service: BossService = Depends(get_boss_service),
    clock=Depends(get_clock),
    _leader=Depends(require_leader),
):
    return boss_timer(boss_or_404(service.update(boss_id, payload)), clock())


# 🔥 Kill: start the respawn timer
@app.post("/api/bosses/{boss_id}/kill", response_model=schemas.BossTimer)
def kill_boss(
    boss_id: str,
    payload: Optional[schemas.BossKill] = None,
    service: BossService = Depends(get_boss_service),
    clock=Depends(get_clock),
    _leader=Depends(require_leader),
):
    killed_by = payload.killed_by if payload else None
    return boss_timer(boss_or_404(service.kill(boss_id, killed_by)), clock())


# 🔄 Revive: undo a mistaken kill
@app.post("/api/bosses/{boss_id}/revive", response_model=schemas.BossTimer)
def revive_boss(
    boss_id: str,
    service: BossService = Depends(get_boss_service),
    clock=Depends(get_clock),
    _leader=Depends(require_leader),
):
    return boss_timer(boss_or_404(service.revive(boss_id)), clock())


# 🗑️ Delete
@app.delete("/api/bosses/{boss_id}", status_code=204)
def delete_boss(
    boss_id: str,
    service: BossService = Depends(get_boss_service),
    _leader=Depends(require_leader),
):
    if not service.delete(boss_id):
        raise HTTPException(status_code=404, detail="Boss not found")
    return Response(status_code=204)


# --- Members ---

@app.get("/api/members", response_model=List[schemas.MemberRead])
def list_members(service: MemberService = Depends(get_member_service)):
    return service.list()


@app.post("/api/members", response_model=schemas.MemberRead, status_code=201)
def register_member(payload: schemas.MemberCreate, service: MemberService = Depends(get_member_service)):
    return service.register(payload)


@app.post("/api/login", response_model=schemas.LoginResponse)
def login(payload: schemas.LoginRequest, service: MemberService = Depends(get_member_service)):
    member = service.authenticate(payload.name, payload.password)
    if member is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    data = schemas.MemberRead.model_validate(member).model_dump()
    return schemas.LoginResponse(**data, **service.capabilities(member))


# members may only touch their own level / power
@app.put("/api/members/self/{name}", response_model=schemas.MemberRead)
def update_own_profile(
    name: str,
    payload: schemas.MemberSelfUpdate,
    service: MemberService = Depends(get_member_service),
):
    return member_or_404(service.self_update(name, payload))


@app.put("/api/members/{member_id}", response_model=schemas.MemberRead)
def update_member(
    member_id: str,
    payload: schemas.MemberUpdate,
    service: MemberService = Depends(get_member_service),
    _leader=Depends(require_leader),
):
    return member_or_404(service.update(member_id, payload))


@app.delete("/api/members/{member_id}", status_code=204)
def delete_member(
    member_id: str,
    service: MemberService = Depends(get_member_service),
    _leader=Depends(require_leader),
):
    if not service.delete(member_id):
        raise HTTPException(status_code=404, detail="Member not found")
    return Response(status_code=204)


# --- Activities ---

@app.get("/api/activities", response_model=List[schemas.ActivityRead])
def list_activities(
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    log: ActivityLog = Depends(get_activity_log),
    clock=Depends(get_clock),
):
    now = clock()
    if limit is None:
        limit = settings.activity_default_limit
    return [
        schemas.ActivityRead.model_validate(activity).model_copy(
            update={"time_ago": timer_utils.format_relative_time(activity.timestamp, now)}
        )
        for activity in log.list(limit)
    ]


@app.post("/api/activities", response_model=schemas.ActivityRead, status_code=201)
def create_activity(payload: schemas.ActivityCreate, log: ActivityLog = Depends(get_activity_log)):
    return log.record(
        payload.type,
        payload.description,
        boss_id=payload.boss_id,
        member_id=payload.member_id,
    )


# --- Notifications ---

@app.get("/api/notifications/active", response_model=Optional[schemas.NotificationRead])
def active_notification(board: NotificationBoard = Depends(get_notification_board)):
    return board.get_active()


@app.post("/api/notifications", response_model=schemas.NotificationRead, status_code=201)
def publish_notification(
    payload: schemas.NotificationCreate,
    board: NotificationBoard = Depends(get_notification_board),
    _leader=Depends(require_leader),
):
    return board.publish(payload)


@app.delete("/api/notifications", status_code=204)
def clear_notifications(
    board: NotificationBoard = Depends(get_notification_board),
    _leader=Depends(require_leader),
):
    board.clear()
    return Response(status_code=204)
