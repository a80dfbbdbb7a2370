import logging

from fastapi import FastAPI

from app.core.error_handlers import register_error_handlers
from app.core.logging_middleware import LoggingMiddleware
from app.db.init_db import init_db

from app.routers.grading import router as grading_router
from app.routers.monitoring import router as monitoring_router
from app.routers.sessions import router as sessions_router
from app.routers.students import router as students_router
from app.routers.tasks import router as tasks_router

logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Exam Grading Monitor")

# Middleware
app.add_middleware(LoggingMiddleware)

register_error_handlers(app)


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


# Include routers
# monitoring first: /sessions/status-check must not be read as /sessions/{session_id}
app.include_router(monitoring_router)
app.include_router(sessions_router, prefix="/sessions", tags=["sessions"])
app.include_router(students_router, prefix="/students", tags=["students"])
app.include_router(grading_router, prefix="/grade", tags=["grading"])
app.include_router(tasks_router, prefix="/tasks", tags=["tasks"])
