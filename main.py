import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Routers
from routers.admin import router as admin_router
from routers.attempts import router as attempts_router
from routers.courses import router as courses_router
from routers.enrollments import router as enrollments_router
from routers.health import router as health_router
from routers.leads import router as leads_router
from routers.quizzes import router as quizzes_router
from routers.sessions import router as sessions_router

logger = logging.getLogger("studyhall")
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

DEFAULT_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"
CORS_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ORIGINS", DEFAULT_ORIGINS).split(",") if o.strip()
]

app = FastAPI(title="Studyhall – Learning API")

# Allow calls from the single-page frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*", "x-api-key", "x-admin-token", "x-user-id"],
)


@app.get("/")
def health_root():
    return {"ok": True}


app.include_router(courses_router)  # /courses, /lessons
app.include_router(enrollments_router)  # /enrollments, /lessons/{id}/progress
app.include_router(quizzes_router)  # /quizzes, /lessons/{id}/quizzes
app.include_router(sessions_router)  # /quiz-sessions/...
app.include_router(attempts_router)  # /attempts/...
app.include_router(leads_router)  # /leads
app.include_router(admin_router)  # /admin/...
app.include_router(health_router)  # /health/...
