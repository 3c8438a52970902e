from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from db import SessionLocal
from deps.auth import current_user_id
from models import Course, Enrollment, Lesson
from progress import recompute_enrollment_progress, upsert_lesson_progress
from schemas.courses import (
    EnrollmentCreate,
    EnrollmentOut,
    LessonProgressOut,
    LessonProgressUpdate,
)

router = APIRouter(tags=["enrollments"])


@router.get("/enrollments/me", response_model=List[EnrollmentOut])
def my_enrollments(user_id: str = Depends(current_user_id)):
    with SessionLocal() as db:
        rows = (
            db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .order_by(Enrollment.enrolled_at.desc())
            .all()
        )
        return [EnrollmentOut.model_validate(e) for e in rows]


@router.post("/enrollments", response_model=EnrollmentOut, status_code=201)
def enroll(req: EnrollmentCreate, user_id: str = Depends(current_user_id)):
    with SessionLocal() as db:
        course = db.get(Course, req.course_id)
        if not course or not course.is_active:
            raise HTTPException(status_code=404, detail="Course not found")
        existing = (
            db.query(Enrollment).filter_by(user_id=user_id, course_id=req.course_id).first()
        )
        if existing:
            raise HTTPException(status_code=400, detail="Already enrolled in this course")

        e = Enrollment(user_id=user_id, course_id=req.course_id, progress=0)
        db.add(e)
        db.flush()
        # lessons may already be completed from before enrolling
        recompute_enrollment_progress(db, user_id, req.course_id)
        db.commit()
        db.refresh(e)
        return EnrollmentOut.model_validate(e)


@router.post("/lessons/{lesson_id}/progress", response_model=LessonProgressOut)
def update_lesson_progress(
    lesson_id: int, req: LessonProgressUpdate, user_id: str = Depends(current_user_id)
):
    with SessionLocal() as db:
        lesson = db.get(Lesson, lesson_id)
        if not lesson or not lesson.is_active:
            raise HTTPException(status_code=404, detail="Lesson not found")

        row = upsert_lesson_progress(
            db, user_id, lesson_id, watch_time=req.watch_time, is_completed=req.is_completed
        )
        enrollment = recompute_enrollment_progress(db, user_id, lesson.course_id)
        db.commit()
        db.refresh(row)
        return LessonProgressOut(
            lesson_id=row.lesson_id,
            is_completed=row.is_completed,
            watch_time=row.watch_time,
            completed_at=row.completed_at,
            course_progress=enrollment.progress if enrollment else None,
        )
