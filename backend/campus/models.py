"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Enumerated columns (roles, grades, seasons, statuses) are stored as plain
strings; the allowed values live here and are enforced by the request
schemas.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    student = "student"
    faculty = "faculty"
    staff = "staff"


class Theme(str, Enum):
    light = "light"
    dark = "dark"
    system = "system"


class NotificationType(str, Enum):
    comment = "comment"
    like = "like"
    mention = "mention"
    channel_invite = "channel_invite"
    event_subscribe = "event_subscribe"


class SwapStatus(str, Enum):
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class Season(str, Enum):
    fall = "Fall"
    spring = "Spring"
    summer = "Summer"


class Grade(str, Enum):
    a_plus = "A+"
    a = "A"
    a_minus = "A-"
    b_plus = "B+"
    b = "B"
    b_minus = "B-"
    c_plus = "C+"
    c = "C"
    c_minus = "C-"
    f = "F"
    in_progress = "IP"


class User(SQLModel, table=True):
    """A registered campus member.

    Fields:
    - `email`: unique login address; its domain decided `role`
    - `password_hash`: hashed password string (never store plaintext)
    - `class_of`: graduation year, students only
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: str = Field(default=Role.student.value, index=True)
    program: Optional[str] = None
    class_of: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class UserSettings(SQLModel, table=True):
    user_id: int = Field(foreign_key='user.id', primary_key=True)
    email_notifications: bool = True
    theme: str = Theme.system.value
    language: str = "en"
    updated_at: datetime = Field(default_factory=utcnow)


class Channel(SQLModel, table=True):
    """A discussion channel.

    `allowed_roles` / `allowed_programs` restrict who may join; `None`
    means unrestricted.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    created_by: int = Field(foreign_key='user.id')
    is_active: bool = True
    allowed_roles: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    allowed_programs: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)


class ChannelMember(SQLModel, table=True):
    channel_id: int = Field(foreign_key='channel.id', primary_key=True)
    user_id: int = Field(foreign_key='user.id', primary_key=True)
    joined_at: datetime = Field(default_factory=utcnow)


class Post(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    channel_id: int = Field(foreign_key='channel.id', index=True)
    user_id: int = Field(foreign_key='user.id')
    title: str
    content: str
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class PostLike(SQLModel, table=True):
    post_id: int = Field(foreign_key='post.id', primary_key=True)
    user_id: int = Field(foreign_key='user.id', primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)


class Comment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    post_id: int = Field(foreign_key='post.id', index=True)
    user_id: int = Field(foreign_key='user.id')
    content: str
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Event(SQLModel, table=True):
    """A calendar event, optionally attached to a channel."""
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    event_date: datetime = Field(index=True)
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    created_by: int = Field(foreign_key='user.id')
    channel_id: Optional[int] = Field(default=None, foreign_key='channel.id')
    is_all_day: bool = False
    max_attendees: Optional[int] = None
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class EventSubscription(SQLModel, table=True):
    event_id: int = Field(foreign_key='event.id', primary_key=True)
    user_id: int = Field(foreign_key='user.id', primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)


class Notification(SQLModel, table=True):
    """Something that happened to one of the recipient's posts or events.

    `user_id` is the recipient, `actor_id` the user who triggered it.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    actor_id: Optional[int] = Field(default=None, foreign_key='user.id')
    type: str
    content: str
    related_post_id: Optional[int] = None
    related_comment_id: Optional[int] = None
    related_channel_id: Optional[int] = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class SwapRequest(SQLModel, table=True):
    """An offer to trade a held course section for a different one.

    Course and section fields are fixed once created; the owner may only
    change `status` or delete the row.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    course_code: str = Field(index=True)
    course_name: str
    current_section: str
    desired_section: str
    instructor_current: Optional[str] = None
    instructor_desired: Optional[str] = None
    semester: str = Field(index=True)
    notes: Optional[str] = None
    status: str = Field(default=SwapStatus.active.value, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Semester(SQLModel, table=True):
    """A term in a user's GPA history. At most one per user is current."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    name: str
    year: int
    season: str
    is_current: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Course(SQLModel, table=True):
    """A graded (or in-progress) course inside a `Semester`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    semester_id: int = Field(foreign_key='semester.id', index=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    course_code: str
    course_name: str
    credit_hours: float
    grade: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
