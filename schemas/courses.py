from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CourseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    subject: str = Field(min_length=1, max_length=100)
    level: str = Field(default="beginner", max_length=50)
    duration_hours: Optional[int] = Field(default=None, ge=0)
    thumbnail_url: Optional[str] = None


class CourseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    title: str
    description: Optional[str] = None
    subject: str
    level: str
    duration_hours: Optional[int] = None
    thumbnail_url: Optional[str] = None
    created_at: Optional[datetime] = None


class LessonCreate(BaseModel):
    course_id: int
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    order: int
    content: Optional[str] = None


class LessonOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    course_id: int
    title: str
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration_minutes: Optional[int] = None
    order: int
    content: Optional[str] = None


class LessonProgressUpdate(BaseModel):
    watch_time: Optional[int] = Field(default=None, ge=0)
    is_completed: bool = False


class LessonProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    lesson_id: int
    is_completed: bool
    watch_time: int
    completed_at: Optional[datetime] = None
    # enrollment progress of the lesson's course after this update, if enrolled
    course_progress: Optional[int] = None


class EnrollmentCreate(BaseModel):
    course_id: int


class EnrollmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    user_id: str
    course_id: int
    enrolled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    progress: int
