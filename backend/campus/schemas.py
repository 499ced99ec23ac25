"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .models import Grade, Role, Season, SwapStatus, Theme


def _strip(value):
    """Trim surrounding whitespace so length limits apply to the visible text."""
    return value.strip() if isinstance(value, str) else value


class RegisterIn(BaseModel):
    """Payload for account creation."""
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=6)
    program: Optional[str] = Field(default=None, max_length=20)
    class_of: Optional[int] = Field(default=None, ge=1900, le=2200)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _strip_names(cls, value):
        return _strip(value)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        value = value.strip().lower()
        if value.count("@") != 1 or value.startswith("@") or value.endswith("@"):
            raise ValueError("invalid e-mail address")
        return value


class LoginIn(BaseModel):
    email: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"


class ProfileUpdate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    class_of: Optional[int] = Field(default=None, ge=1900, le=2200)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _strip_names(cls, value):
        return _strip(value)


class SettingsUpdate(BaseModel):
    """Partial settings update; omitted fields are left untouched."""
    email_notifications: Optional[bool] = None
    theme: Optional[Theme] = None
    language: Optional[str] = Field(default=None, min_length=2, max_length=10)


class ChannelIn(BaseModel):
    name: str = Field(min_length=1, max_length=50, pattern=r"^[a-zA-Z0-9\s-]+$")
    description: Optional[str] = Field(default=None, max_length=500)
    allowed_roles: Optional[List[Role]] = None
    allowed_programs: Optional[List[str]] = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        return _strip(value)


class PostIn(BaseModel):
    channel_id: int
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1, max_length=5000)

    @field_validator("title", "content", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return _strip(value)


class CommentIn(BaseModel):
    content: str = Field(min_length=1, max_length=2000)

    @field_validator("content", mode="before")
    @classmethod
    def _strip_content(cls, value):
        return _strip(value)


class EventIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    event_date: datetime
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    channel_id: Optional[int] = None
    is_all_day: bool = False
    max_attendees: Optional[int] = Field(default=None, gt=0)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value):
        return _strip(value)


class SwapRequestIn(BaseModel):
    """A new swap offer. Section strings are kept verbatim (no case folding)."""
    course_code: str = Field(min_length=1, max_length=20)
    course_name: str = Field(min_length=1, max_length=200)
    current_section: str = Field(min_length=1, max_length=20)
    desired_section: str = Field(min_length=1, max_length=20)
    instructor_current: Optional[str] = None
    instructor_desired: Optional[str] = None
    semester: str = Field(min_length=1, max_length=40)
    notes: Optional[str] = Field(default=None, max_length=1000)


class SwapStatusIn(BaseModel):
    status: SwapStatus


class SemesterIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    year: int = Field(ge=1900, le=2200)
    season: Season
    is_current: bool = False


class CourseIn(BaseModel):
    semester_id: int
    course_code: str = Field(min_length=1, max_length=20)
    course_name: str = Field(min_length=1, max_length=200)
    credit_hours: float = Field(gt=0, le=30)
    grade: Grade


class CourseUpdate(BaseModel):
    course_code: Optional[str] = Field(default=None, min_length=1, max_length=20)
    course_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    credit_hours: Optional[float] = Field(default=None, gt=0, le=30)
    grade: Optional[Grade] = None
