from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func

from db import SessionLocal
from deps.auth import require_admin
from models import Course, Enrollment, Lead, Lesson, QuizAttempt
from schemas.leads import LeadOut
from sessions import store

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/stats")
def admin_stats():
    with SessionLocal() as db:
        courses = db.query(func.count(Course.id)).filter(Course.is_active.is_(True)).scalar()
        lessons = db.query(func.count(Lesson.id)).filter(Lesson.is_active.is_(True)).scalar()
        enrollments = db.query(func.count(Enrollment.id)).scalar()
        attempts = db.query(func.count(QuizAttempt.id)).scalar()
        passed = (
            db.query(func.count(QuizAttempt.id)).filter(QuizAttempt.is_passed.is_(True)).scalar()
        )
        recent = db.query(Lead).order_by(Lead.created_at.desc(), Lead.id.desc()).limit(5).all()
        recent_leads = [LeadOut.model_validate(x).model_dump(mode="json") for x in recent]

    return {
        "ok": True,
        "total_courses": courses or 0,
        "total_lessons": lessons or 0,
        "total_enrollments": enrollments or 0,
        "total_attempts": attempts or 0,
        "passed_attempts": passed or 0,
        "live_sessions": len(store),
        "recent_leads": recent_leads,
    }
