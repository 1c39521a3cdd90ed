import logging
from typing import Optional
from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import analytics_service
import milestone_service
import sharing_service
import task_service
import user_service
from auth import get_current_user
from config import APP_ENV, PORT
from db import Base, engine, session_scope, wait_for_database, disconnect
from errors import register_exception_handlers
from messaging import plan_events, check_rabbitmq_health
from patterns import client_ip, default_limiter, public_endpoint_limiter, sharing_endpoint_limiter, check_redis_health
from presentation import legend_entry, share_status_icon, status_legend
from schemas import (
    AccessTokenResponse,
    ActivityItem,
    DashboardStats,
    LoginRequest,
    MilestoneCreate,
    MilestoneOut,
    MilestoneUpdate,
    RefreshRequest,
    ShareIcon,
    ShareOut,
    StatusLegend,
    StatusLegendEntry,
    TaskCreate,
    TaskOut,
    TaskUpdate,
    TokenResponse,
    TrendPoint,
    UserCreate,
    UserOut,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Planner API")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
register_exception_handlers(app)

wait_for_database()
Base.metadata.create_all(bind=engine)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Iniciando Planner API (entorno: {APP_ENV})")
    plan_events.start()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Deteniendo Planner API")
    plan_events.stop()
    disconnect()


# Middleware de rate limiting
@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    if request.url.path in ["/healthz", "/health"]:
        return await call_next(request)
    if not default_limiter.is_allowed(client_ip(request)):
        return JSONResponse(
            status_code=429,
            content={"error": {"message": default_limiter.message, "code": "RATE_LIMITED"}},
        )
    return await call_next(request)


if APP_ENV != "test":
    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path}")
        return await call_next(request)


@app.get("/")
def root():
    return {"message": "Welcome to the Planner API"}


@app.get("/health")
@app.get("/healthz")
async def health_check():
    health_status = {
        "service": "planner-api",
        "status": "healthy",
        "dependencies": {}
    }

    try:
        with session_scope() as s:
            s.execute(text("SELECT 1"))
        health_status["dependencies"]["database"] = {"status": "healthy"}
    except Exception as e:
        health_status["dependencies"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"

    for name, check in (("redis", check_redis_health), ("rabbitmq", check_rabbitmq_health)):
        result = check()
        health_status["dependencies"][name] = result
        if result["status"] == "unhealthy":
            health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


# Usuarios

@app.post("/api/users/register", response_model=TokenResponse, status_code=201)
def register(payload: UserCreate):
    user = user_service.create_user(payload)
    tokens = user_service.generate_user_tokens(user)
    return TokenResponse(
        message="User registered successfully",
        expires_in=user_service.token_expires_in(),
        **tokens,
    )


@app.post("/api/users/login", response_model=TokenResponse)
def login(payload: LoginRequest):
    user = user_service.authenticate(payload.email, payload.password)
    tokens = user_service.generate_user_tokens(user)
    logger.info(f"Login exitoso para usuario: {user.email}")
    return TokenResponse(
        message="Login successful",
        expires_in=user_service.token_expires_in(),
        **tokens,
    )


@app.post("/api/users/refresh-token", response_model=AccessTokenResponse)
def refresh_token(payload: RefreshRequest):
    access_token = user_service.refresh_access_token(payload.refresh_token)
    return AccessTokenResponse(access_token=access_token, expires_in=user_service.token_expires_in())


@app.post("/api/users/logout")
def logout(payload: RefreshRequest):
    user_service.revoke_refresh_token(payload.refresh_token)
    return {"message": "Logged out successfully"}


@app.get("/api/users/me", response_model=UserOut)
def me(current_user: UserOut = Depends(get_current_user)):
    return current_user


# Tareas (planes)

@app.get("/api/tasks", response_model=list[TaskOut])
def list_tasks(current_user: UserOut = Depends(get_current_user)):
    return task_service.get_tasks_by_user_id(current_user.id)


@app.post("/api/tasks", response_model=TaskOut, status_code=201)
def create_task(payload: TaskCreate, current_user: UserOut = Depends(get_current_user)):
    return task_service.create_task(payload, current_user.id)


@app.get("/api/tasks/{task_id}", response_model=TaskOut)
def get_task(task_id: int, current_user: UserOut = Depends(get_current_user)):
    return task_service.get_task(task_id, current_user.id)


@app.put("/api/tasks/{task_id}", response_model=TaskOut)
def update_task(task_id: int, payload: TaskUpdate, current_user: UserOut = Depends(get_current_user)):
    return task_service.update_task(task_id, payload, current_user.id)


@app.delete("/api/tasks/{task_id}", status_code=204)
def delete_task(task_id: int, current_user: UserOut = Depends(get_current_user)):
    task_service.delete_task(task_id, current_user.id)
    return Response(status_code=204)


# Compartir

@app.post("/api/tasks/{task_id}/share", response_model=ShareOut,
          dependencies=[Depends(sharing_endpoint_limiter)])
def share_task(task_id: int, current_user: UserOut = Depends(get_current_user)):
    return sharing_service.enable_sharing(task_id, current_user.id)


@app.delete("/api/tasks/{task_id}/share", response_model=ShareOut)
def unshare_task(task_id: int, current_user: UserOut = Depends(get_current_user)):
    return sharing_service.disable_sharing(task_id, current_user.id)


@app.post("/api/tasks/{task_id}/share/regenerate", response_model=ShareOut,
          dependencies=[Depends(sharing_endpoint_limiter)])
def regenerate_share_link(task_id: int, current_user: UserOut = Depends(get_current_user)):
    return sharing_service.regenerate_link(task_id, current_user.id)


@app.get("/api/shared/{link}", response_model=TaskOut, dependencies=[Depends(public_endpoint_limiter)])
def get_shared_task(link: str):
    return sharing_service.get_shared_task(link)


# Milestones

@app.get("/api/milestones/{task_id}", response_model=list[MilestoneOut])
def list_milestones(task_id: int, current_user: UserOut = Depends(get_current_user)):
    return milestone_service.get_milestones_by_task_id(task_id, current_user.id)


@app.post("/api/milestones", response_model=MilestoneOut, status_code=201)
def create_milestone(payload: MilestoneCreate, current_user: UserOut = Depends(get_current_user)):
    return milestone_service.create_milestone(payload, current_user.id)


@app.put("/api/milestones/{milestone_id}", response_model=MilestoneOut)
def update_milestone(milestone_id: int, payload: MilestoneUpdate, current_user: UserOut = Depends(get_current_user)):
    return milestone_service.update_milestone(milestone_id, payload, current_user.id)


@app.delete("/api/milestones/{milestone_id}", response_model=MilestoneOut)
def delete_milestone(milestone_id: int, current_user: UserOut = Depends(get_current_user)):
    return milestone_service.delete_milestone(milestone_id, current_user.id)


# Analítica

@app.get("/api/analytics/dashboard", response_model=DashboardStats)
def dashboard(current_user: UserOut = Depends(get_current_user)):
    return analytics_service.get_dashboard_stats(current_user.id)


@app.get("/api/analytics/trends", response_model=list[TrendPoint])
def trends(days: int = 30, current_user: UserOut = Depends(get_current_user)):
    return analytics_service.get_completion_trends(current_user.id, days)


@app.get("/api/analytics/status-distribution", response_model=dict[str, int])
def status_distribution(current_user: UserOut = Depends(get_current_user)):
    return analytics_service.get_status_distribution(current_user.id)


@app.get("/api/analytics/activity", response_model=list[ActivityItem])
def activity(limit: int = 10, current_user: UserOut = Depends(get_current_user)):
    return analytics_service.get_activity_feed(current_user.id, limit)


# Metadatos de presentación

@app.get("/api/meta/statuses", response_model=StatusLegend)
def statuses(is_full_screen: bool = False):
    return status_legend(is_full_screen)


@app.get("/api/meta/statuses/{status}", response_model=StatusLegendEntry)
def status_detail(status: str):
    return legend_entry(status)


@app.get("/api/meta/share-icon", response_model=ShareIcon)
def share_icon(is_public: bool = False, size: int = 16, class_name: Optional[str] = ""):
    return share_status_icon(is_public, size, class_name or "")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
