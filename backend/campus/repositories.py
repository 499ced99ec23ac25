"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate. Methods named
`create`/`save`/`delete` commit immediately; methods named `stage_*` only
add to the session so a service can group them inside
`database.unit_of_work`.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from . import models


def _like(term: str) -> str:
    return f"%{term}%"


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def stage_create(self, user: models.User) -> models.User:
        """Add a user and flush to obtain its id, without committing."""
        self.session.add(user)
        self.session.flush()
        return user

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by e-mail (case-insensitive) or `None`."""
        stmt = select(models.User).where(func.lower(models.User.email) == email.strip().lower())
        return self.session.exec(stmt).first()

    def get_many(self, user_ids: Iterable[int]) -> Dict[int, models.User]:
        ids = set(user_ids)
        if not ids:
            return {}
        stmt = select(models.User).where(col(models.User.id).in_(ids))
        return {u.id: u for u in self.session.exec(stmt).all()}

    def search(self, term: str, limit: int = 10) -> List[models.User]:
        full_name = models.User.first_name + " " + models.User.last_name
        stmt = (
            select(models.User)
            .where(or_(full_name.ilike(_like(term)), col(models.User.email).ilike(_like(term))))
            .order_by(models.User.first_name, models.User.last_name)
            .limit(limit)
        )
        return self.session.exec(stmt).all()


class SettingsRepository:
    def __init__(self, session: Session):
        self.session = session

    def stage_defaults(self, user_id: int) -> models.UserSettings:
        row = models.UserSettings(user_id=user_id)
        self.session.add(row)
        return row

    def get_or_create(self, user_id: int) -> models.UserSettings:
        """Return the user's settings, inserting the defaults on first read."""
        row = self.session.get(models.UserSettings, user_id)
        if row:
            return row
        row = self.stage_defaults(user_id)
        self.session.commit()
        self.session.refresh(row)
        return row

    def save(self, row: models.UserSettings) -> models.UserSettings:
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row


class ChannelRepository:
    """Channels, their memberships and the per-channel counters."""
    def __init__(self, session: Session):
        self.session = session

    def stage_create(self, channel: models.Channel) -> models.Channel:
        self.session.add(channel)
        self.session.flush()
        return channel

    def get_active(self, channel_id: int) -> Optional[models.Channel]:
        channel = self.session.get(models.Channel, channel_id)
        if channel and channel.is_active:
            return channel
        return None

    def get_many(self, channel_ids: Iterable[int]) -> Dict[int, models.Channel]:
        ids = {i for i in channel_ids if i is not None}
        if not ids:
            return {}
        stmt = select(models.Channel).where(col(models.Channel.id).in_(ids))
        return {c.id: c for c in self.session.exec(stmt).all()}

    def is_member(self, channel_id: int, user_id: int) -> bool:
        return self.session.get(models.ChannelMember, (channel_id, user_id)) is not None

    def stage_member(self, channel_id: int, user_id: int) -> models.ChannelMember:
        member = models.ChannelMember(channel_id=channel_id, user_id=user_id)
        self.session.add(member)
        return member

    def add_member(self, channel_id: int, user_id: int) -> bool:
        """Join a channel; returns False if the user already belonged to it."""
        if self.is_member(channel_id, user_id):
            return False
        self.stage_member(channel_id, user_id)
        self.session.commit()
        return True

    def remove_member(self, channel_id: int, user_id: int) -> bool:
        member = self.session.get(models.ChannelMember, (channel_id, user_id))
        if not member:
            return False
        self.session.delete(member)
        self.session.commit()
        return True

    def member_channel_ids(self, user_id: int) -> Set[int]:
        stmt = select(models.ChannelMember.channel_id).where(models.ChannelMember.user_id == user_id)
        return set(self.session.exec(stmt).all())

    def list_for_member(self, user_id: int) -> List[models.Channel]:
        """Active channels the user belongs to, ordered by name."""
        stmt = (
            select(models.Channel)
            .join(models.ChannelMember, models.ChannelMember.channel_id == models.Channel.id)
            .where(models.ChannelMember.user_id == user_id, models.Channel.is_active == True)  # noqa: E712
            .order_by(models.Channel.name)
        )
        return self.session.exec(stmt).all()

    def list_active(self) -> List[models.Channel]:
        stmt = select(models.Channel).where(models.Channel.is_active == True).order_by(models.Channel.name)  # noqa: E712
        return self.session.exec(stmt).all()

    def member_counts(self, channel_ids: Iterable[int]) -> Dict[int, int]:
        ids = set(channel_ids)
        if not ids:
            return {}
        stmt = (
            select(models.ChannelMember.channel_id, func.count())
            .where(col(models.ChannelMember.channel_id).in_(ids))
            .group_by(models.ChannelMember.channel_id)
        )
        return dict(self.session.exec(stmt).all())

    def post_counts(self, channel_ids: Iterable[int]) -> Dict[int, int]:
        ids = set(channel_ids)
        if not ids:
            return {}
        stmt = (
            select(models.Post.channel_id, func.count())
            .where(col(models.Post.channel_id).in_(ids), models.Post.is_deleted == False)  # noqa: E712
            .group_by(models.Post.channel_id)
        )
        return dict(self.session.exec(stmt).all())

    def search(self, term: str, limit: int = 10) -> List[models.Channel]:
        stmt = (
            select(models.Channel)
            .where(
                models.Channel.is_active == True,  # noqa: E712
                or_(col(models.Channel.name).ilike(_like(term)), col(models.Channel.description).ilike(_like(term))),
            )
            .order_by(col(models.Channel.created_at).desc())
            .limit(limit)
        )
        return self.session.exec(stmt).all()


class PostRepository:
    """Posts, likes and the counters shown on post cards."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, post: models.Post) -> models.Post:
        self.session.add(post)
        self.session.commit()
        self.session.refresh(post)
        return post

    def get(self, post_id: int) -> Optional[models.Post]:
        """Fetch a post unless it was soft-deleted."""
        post = self.session.get(models.Post, post_id)
        if post and not post.is_deleted:
            return post
        return None

    def soft_delete(self, post: models.Post) -> None:
        post.is_deleted = True
        post.updated_at = models.utcnow()
        self.session.add(post)
        self.session.commit()

    def _visible(self):
        return (
            select(models.Post)
            .join(models.Channel, models.Channel.id == models.Post.channel_id)
            .where(models.Post.is_deleted == False, models.Channel.is_active == True)  # noqa: E712
        )

    def list_for_channel(self, channel_id: int, limit: int = 50) -> List[models.Post]:
        stmt = (
            self._visible()
            .where(models.Post.channel_id == channel_id)
            .order_by(col(models.Post.created_at).desc(), col(models.Post.id).desc())
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def list_for_member(self, user_id: int, limit: int = 20) -> List[models.Post]:
        """Newest posts across every channel `user_id` belongs to."""
        stmt = (
            self._visible()
            .join(models.ChannelMember, models.ChannelMember.channel_id == models.Post.channel_id)
            .where(models.ChannelMember.user_id == user_id)
            .order_by(col(models.Post.created_at).desc(), col(models.Post.id).desc())
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def search_for_member(self, user_id: int, term: str, limit: int = 10) -> List[models.Post]:
        stmt = (
            self._visible()
            .join(models.ChannelMember, models.ChannelMember.channel_id == models.Post.channel_id)
            .where(
                models.ChannelMember.user_id == user_id,
                or_(col(models.Post.title).ilike(_like(term)), col(models.Post.content).ilike(_like(term))),
            )
            .order_by(col(models.Post.created_at).desc())
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def like_counts(self, post_ids: Iterable[int]) -> Dict[int, int]:
        ids = set(post_ids)
        if not ids:
            return {}
        stmt = (
            select(models.PostLike.post_id, func.count())
            .where(col(models.PostLike.post_id).in_(ids))
            .group_by(models.PostLike.post_id)
        )
        return dict(self.session.exec(stmt).all())

    def comment_counts(self, post_ids: Iterable[int]) -> Dict[int, int]:
        ids = set(post_ids)
        if not ids:
            return {}
        stmt = (
            select(models.Comment.post_id, func.count())
            .where(col(models.Comment.post_id).in_(ids), models.Comment.is_deleted == False)  # noqa: E712
            .group_by(models.Comment.post_id)
        )
        return dict(self.session.exec(stmt).all())

    def liked_by(self, user_id: int, post_ids: Iterable[int]) -> Set[int]:
        ids = set(post_ids)
        if not ids:
            return set()
        stmt = select(models.PostLike.post_id).where(
            models.PostLike.user_id == user_id, col(models.PostLike.post_id).in_(ids)
        )
        return set(self.session.exec(stmt).all())

    def get_like(self, post_id: int, user_id: int) -> Optional[models.PostLike]:
        return self.session.get(models.PostLike, (post_id, user_id))

    def stage_like(self, post_id: int, user_id: int) -> models.PostLike:
        like = models.PostLike(post_id=post_id, user_id=user_id)
        self.session.add(like)
        return like

    def remove_like(self, like: models.PostLike) -> None:
        self.session.delete(like)
        self.session.commit()


class CommentRepository:
    def __init__(self, session: Session):
        self.session = session

    def stage_create(self, comment: models.Comment) -> models.Comment:
        self.session.add(comment)
        self.session.flush()
        return comment

    def get(self, comment_id: int) -> Optional[models.Comment]:
        comment = self.session.get(models.Comment, comment_id)
        if comment and not comment.is_deleted:
            return comment
        return None

    def list_for_post(self, post_id: int) -> List[models.Comment]:
        """Visible comments on a post, oldest first."""
        stmt = (
            select(models.Comment)
            .where(models.Comment.post_id == post_id, models.Comment.is_deleted == False)  # noqa: E712
            .order_by(models.Comment.created_at, models.Comment.id)
        )
        return self.session.exec(stmt).all()

    def soft_delete(self, comment: models.Comment) -> None:
        comment.is_deleted = True
        self.session.add(comment)
        self.session.commit()


class EventRepository:
    """Calendar events and their subscriptions."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, event: models.Event) -> models.Event:
        self.session.add(event)
        self.session.commit()
        self.session.refresh(event)
        return event

    def get_active(self, event_id: int) -> Optional[models.Event]:
        event = self.session.get(models.Event, event_id)
        if event and not event.is_deleted:
            return event
        return None

    def list_between(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[models.Event]:
        """Non-deleted events, soonest first, optionally within [start, end)."""
        stmt = select(models.Event).where(models.Event.is_deleted == False)  # noqa: E712
        if start is not None:
            stmt = stmt.where(models.Event.event_date >= start)
        if end is not None:
            stmt = stmt.where(models.Event.event_date < end)
        stmt = stmt.order_by(models.Event.event_date, models.Event.id)
        return self.session.exec(stmt).all()

    def soft_delete(self, event: models.Event) -> None:
        event.is_deleted = True
        self.session.add(event)
        self.session.commit()

    def attendee_counts(self, event_ids: Iterable[int]) -> Dict[int, int]:
        ids = set(event_ids)
        if not ids:
            return {}
        stmt = (
            select(models.EventSubscription.event_id, func.count())
            .where(col(models.EventSubscription.event_id).in_(ids))
            .group_by(models.EventSubscription.event_id)
        )
        return dict(self.session.exec(stmt).all())

    def subscribed_by(self, user_id: int, event_ids: Iterable[int]) -> Set[int]:
        ids = set(event_ids)
        if not ids:
            return set()
        stmt = select(models.EventSubscription.event_id).where(
            models.EventSubscription.user_id == user_id, col(models.EventSubscription.event_id).in_(ids)
        )
        return set(self.session.exec(stmt).all())

    def get_subscription(self, event_id: int, user_id: int) -> Optional[models.EventSubscription]:
        return self.session.get(models.EventSubscription, (event_id, user_id))

    def stage_subscription(self, event_id: int, user_id: int) -> models.EventSubscription:
        sub = models.EventSubscription(event_id=event_id, user_id=user_id)
        self.session.add(sub)
        return sub

    def remove_subscription(self, sub: models.EventSubscription) -> None:
        self.session.delete(sub)
        self.session.commit()


class NotificationRepository:
    def __init__(self, session: Session):
        self.session = session

    def stage(self, notification: models.Notification) -> models.Notification:
        self.session.add(notification)
        return notification

    def list_for_user(self, user_id: int, limit: int = 50) -> List[models.Notification]:
        stmt = (
            select(models.Notification)
            .where(models.Notification.user_id == user_id)
            .order_by(col(models.Notification.created_at).desc(), col(models.Notification.id).desc())
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def mark_read(self, notification_id: int, user_id: int) -> bool:
        row = self.session.get(models.Notification, notification_id)
        if not row or row.user_id != user_id:
            return False
        row.is_read = True
        self.session.add(row)
        self.session.commit()
        return True

    def mark_all_read(self, user_id: int) -> int:
        stmt = select(models.Notification).where(
            models.Notification.user_id == user_id, models.Notification.is_read == False  # noqa: E712
        )
        rows = self.session.exec(stmt).all()
        for row in rows:
            row.is_read = True
            self.session.add(row)
        self.session.commit()
        return len(rows)


class SwapRequestRepository:
    """Swap requests; every mutation is scoped to the owning user."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, request: models.SwapRequest) -> models.SwapRequest:
        self.session.add(request)
        self.session.commit()
        self.session.refresh(request)
        return request

    def get_owned(self, request_id: int, user_id: int) -> Optional[models.SwapRequest]:
        """Return the request only if `user_id` owns it."""
        stmt = select(models.SwapRequest).where(
            models.SwapRequest.id == request_id, models.SwapRequest.user_id == user_id
        )
        return self.session.exec(stmt).first()

    def list_active(self, course_code: Optional[str] = None, semester: Optional[str] = None,
                    instructor: Optional[str] = None) -> List[models.SwapRequest]:
        """Active requests from everyone, newest first, with optional filters.

        `course_code` and `instructor` are case-insensitive substrings (the
        instructor may be on either side); `semester` is exact.
        """
        stmt = select(models.SwapRequest).where(models.SwapRequest.status == models.SwapStatus.active.value)
        if course_code:
            stmt = stmt.where(col(models.SwapRequest.course_code).ilike(_like(course_code)))
        if semester:
            stmt = stmt.where(models.SwapRequest.semester == semester)
        if instructor:
            stmt = stmt.where(or_(
                col(models.SwapRequest.instructor_current).ilike(_like(instructor)),
                col(models.SwapRequest.instructor_desired).ilike(_like(instructor)),
            ))
        stmt = stmt.order_by(col(models.SwapRequest.created_at).desc(), col(models.SwapRequest.id).desc())
        return self.session.exec(stmt).all()

    def list_for_user(self, user_id: int, active_only: bool = False) -> List[models.SwapRequest]:
        stmt = select(models.SwapRequest).where(models.SwapRequest.user_id == user_id)
        if active_only:
            stmt = stmt.where(models.SwapRequest.status == models.SwapStatus.active.value)
        stmt = stmt.order_by(col(models.SwapRequest.created_at).desc(), col(models.SwapRequest.id).desc())
        return self.session.exec(stmt).all()

    def save(self, request: models.SwapRequest) -> models.SwapRequest:
        request.updated_at = models.utcnow()
        self.session.add(request)
        self.session.commit()
        self.session.refresh(request)
        return request

    def delete(self, request: models.SwapRequest) -> None:
        self.session.delete(request)
        self.session.commit()


class SemesterRepository:
    def __init__(self, session: Session):
        self.session = session

    def stage_create(self, semester: models.Semester) -> models.Semester:
        self.session.add(semester)
        self.session.flush()
        return semester

    def get_owned(self, semester_id: int, user_id: int) -> Optional[models.Semester]:
        stmt = select(models.Semester).where(
            models.Semester.id == semester_id, models.Semester.user_id == user_id
        )
        return self.session.exec(stmt).first()

    def list_for_user(self, user_id: int) -> List[models.Semester]:
        stmt = select(models.Semester).where(models.Semester.user_id == user_id)
        return self.session.exec(stmt).all()

    def stage_clear_current(self, user_id: int) -> None:
        """Unset `is_current` on every semester of `user_id` (no commit)."""
        stmt = select(models.Semester).where(
            models.Semester.user_id == user_id, models.Semester.is_current == True  # noqa: E712
        )
        for semester in self.session.exec(stmt).all():
            semester.is_current = False
            semester.updated_at = models.utcnow()
            self.session.add(semester)
        self.session.flush()

    def stage_delete(self, semester: models.Semester) -> None:
        self.session.delete(semester)


class CourseRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, course: models.Course) -> models.Course:
        self.session.add(course)
        self.session.commit()
        self.session.refresh(course)
        return course

    def get_owned(self, course_id: int, user_id: int) -> Optional[models.Course]:
        stmt = select(models.Course).where(models.Course.id == course_id, models.Course.user_id == user_id)
        return self.session.exec(stmt).first()

    def list_for_semester(self, semester_id: int, user_id: int) -> List[models.Course]:
        stmt = (
            select(models.Course)
            .where(models.Course.semester_id == semester_id, models.Course.user_id == user_id)
            .order_by(models.Course.course_code)
        )
        return self.session.exec(stmt).all()

    def save(self, course: models.Course) -> models.Course:
        course.updated_at = models.utcnow()
        self.session.add(course)
        self.session.commit()
        self.session.refresh(course)
        return course

    def delete(self, course: models.Course) -> None:
        self.session.delete(course)
        self.session.commit()

    def stage_delete_for_semester(self, semester_id: int) -> int:
        stmt = select(models.Course).where(models.Course.semester_id == semester_id)
        rows = self.session.exec(stmt).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)
