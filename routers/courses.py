from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from db import SessionLocal
from deps.auth import require_admin
from models import Course, Lesson
from progress import recompute_course_enrollments
from schemas.courses import CourseCreate, CourseOut, LessonCreate, LessonOut

router = APIRouter(tags=["catalog"])


@router.get("/courses", response_model=List[CourseOut])
def list_courses():
    with SessionLocal() as db:
        rows = (
            db.query(Course)
            .filter(Course.is_active.is_(True))
            .order_by(Course.created_at.desc(), Course.id.desc())
            .all()
        )
        return [CourseOut.model_validate(c) for c in rows]


@router.get("/courses/{course_id}", response_model=CourseOut)
def get_course(course_id: int):
    with SessionLocal() as db:
        c = db.get(Course, course_id)
        if not c or not c.is_active:
            raise HTTPException(status_code=404, detail="Course not found")
        return CourseOut.model_validate(c)


@router.post(
    "/courses", response_model=CourseOut, status_code=201, dependencies=[Depends(require_admin)]
)
def create_course(req: CourseCreate):
    with SessionLocal() as db:
        c = Course(**req.model_dump())
        db.add(c)
        db.commit()
        db.refresh(c)
        return CourseOut.model_validate(c)


@router.delete("/courses/{course_id}", dependencies=[Depends(require_admin)])
def delete_course(course_id: int):
    # soft delete; enrollments and attempts keep pointing at the row
    with SessionLocal() as db:
        c = db.get(Course, course_id)
        if not c:
            raise HTTPException(status_code=404, detail="Course not found")
        c.is_active = False
        db.commit()
    return {"ok": True}


@router.get("/courses/{course_id}/lessons", response_model=List[LessonOut])
def list_lessons(course_id: int):
    with SessionLocal() as db:
        rows = (
            db.query(Lesson)
            .filter(Lesson.course_id == course_id, Lesson.is_active.is_(True))
            .order_by(Lesson.order.asc(), Lesson.id.asc())
            .all()
        )
        return [LessonOut.model_validate(x) for x in rows]


@router.get("/lessons/{lesson_id}", response_model=LessonOut)
def get_lesson(lesson_id: int):
    with SessionLocal() as db:
        x = db.get(Lesson, lesson_id)
        if not x or not x.is_active:
            raise HTTPException(status_code=404, detail="Lesson not found")
        return LessonOut.model_validate(x)


@router.post(
    "/lessons", response_model=LessonOut, status_code=201, dependencies=[Depends(require_admin)]
)
def create_lesson(req: LessonCreate):
    with SessionLocal() as db:
        if not db.get(Course, req.course_id):
            raise HTTPException(status_code=404, detail="Course not found")
        x = Lesson(**req.model_dump())
        db.add(x)
        db.flush()
        recompute_course_enrollments(db, x.course_id)
        db.commit()
        db.refresh(x)
        return LessonOut.model_validate(x)


@router.delete("/lessons/{lesson_id}", dependencies=[Depends(require_admin)])
def delete_lesson(lesson_id: int):
    with SessionLocal() as db:
        x = db.get(Lesson, lesson_id)
        if not x:
            raise HTTPException(status_code=404, detail="Lesson not found")
        x.is_active = False
        db.flush()
        recompute_course_enrollments(db, x.course_id)
        db.commit()
    return {"ok": True}
