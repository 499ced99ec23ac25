"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories and
the pure domain modules (`gpa`, `swaps`). Every operation receives the
acting user's id explicitly; nothing is read from request-global state.
Services raise `errors.CampusError` subclasses, which the API layer maps
to HTTP responses.
"""

import logging
from calendar import monthrange
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from . import gpa, models, repositories, swaps
from .config import settings
from .database import unit_of_work
from .errors import AuthError, ConflictError, InvalidInputError, NotFoundError, PermissionDeniedError

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
logger = logging.getLogger("campus.services")


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store timestamps as naive UTC so SQLite and Postgres compare alike."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _author_fields(user: Optional[models.User]) -> dict:
    if not user:
        return {'first_name': None, 'last_name': None, 'role': None, 'program_short': None}
    return {
        'first_name': user.first_name,
        'last_name': user.last_name,
        'role': user.role,
        'program_short': user.program,
    }


class AuthService:
    """Account creation, credential checks and token issuance."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.settings_repo = repositories.SettingsRepository(session)

    @staticmethod
    def signup_options() -> List[dict]:
        """Allowed e-mail domains and the role each one grants."""
        return [{'email_suffix': f'@{domain}', 'role': role}
                for domain, role in sorted(settings.EMAIL_DOMAIN_ROLES.items())]

    @staticmethod
    def role_for_email(email: str) -> str:
        domain = email.rsplit('@', 1)[-1].lower()
        role = settings.EMAIL_DOMAIN_ROLES.get(domain)
        if not role:
            raise InvalidInputError(f"e-mail domain @{domain} is not allowed")
        return role

    def email_available(self, email: str) -> bool:
        return self.user_repo.get_by_email(email) is None

    def issue_token(self, user: models.User) -> str:
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "email": user.email, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    def register(self, first_name: str, last_name: str, email: str, password: str,
                 program: Optional[str] = None, class_of: Optional[int] = None):
        """Create a user with default settings and return `(user, token)`.

        The user row, its settings row and the token are produced in one
        unit of work: if token signing fails nothing is committed.
        """
        role = self.role_for_email(email)
        if not self.email_available(email):
            raise ConflictError("Email already registered")
        user = models.User(
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=email.strip().lower(),
            password_hash=PWD_CTX.hash(password),
            role=role,
            program=program,
            class_of=class_of if role == models.Role.student.value else None,
        )
        try:
            with unit_of_work(self.session):
                self.user_repo.stage_create(user)
                self.settings_repo.stage_defaults(user.id)
                token = self.issue_token(user)
        except IntegrityError as exc:
            raise ConflictError("Email already registered") from exc
        self.session.refresh(user)
        logger.info("user_registered id=%s role=%s", user.id, role)
        return user, token

    def authenticate(self, email: str, password: str) -> str:
        """Verify credentials and return a signed JWT, or raise AuthError."""
        user = self.user_repo.get_by_email(email)
        if not user or not PWD_CTX.verify(password, user.password_hash):
            raise AuthError("invalid credentials")
        return self.issue_token(user)


class ProfileService:
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.settings_repo = repositories.SettingsRepository(session)

    def _user(self, user_id: int) -> models.User:
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def get_profile(self, user_id: int) -> dict:
        user = self._user(user_id)
        return {
            'id': user.id,
            'first_name': user.first_name,
            'last_name': user.last_name,
            'email': user.email,
            'role': user.role,
            'program': user.program,
            'class_of': user.class_of,
        }

    def update_profile(self, user_id: int, first_name: str, last_name: str, class_of: Optional[int] = None) -> dict:
        user = self._user(user_id)
        user.first_name = first_name.strip()
        user.last_name = last_name.strip()
        user.class_of = class_of or None
        self.user_repo.save(user)
        return self.get_profile(user_id)

    def get_settings(self, user_id: int) -> models.UserSettings:
        self._user(user_id)
        return self.settings_repo.get_or_create(user_id)

    def update_settings(self, user_id: int, changes: dict) -> models.UserSettings:
        """Apply the non-None entries of `changes` to the user's settings."""
        row = self.get_settings(user_id)
        for field in ('email_notifications', 'theme', 'language'):
            value = changes.get(field)
            if value is not None:
                setattr(row, field, getattr(value, 'value', value))
        row.updated_at = models.utcnow()
        return self.settings_repo.save(row)


class NotificationService:
    """In-app notifications.

    Notifications are best effort: they are committed after the action that
    triggered them, and a failed insert is logged without undoing it.
    """
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.NotificationRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def notify(self, recipient_id: int, actor_id: int, type: models.NotificationType, content: str,
               related_post_id: Optional[int] = None, related_comment_id: Optional[int] = None,
               related_channel_id: Optional[int] = None) -> Optional[models.Notification]:
        if recipient_id == actor_id:
            return None
        row = models.Notification(
            user_id=recipient_id,
            actor_id=actor_id,
            type=type.value,
            content=content,
            related_post_id=related_post_id,
            related_comment_id=related_comment_id,
            related_channel_id=related_channel_id,
        )
        try:
            self.repo.stage(row)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("notification_failed recipient=%s type=%s", recipient_id, type.value)
            return None
        return row

    def list_for_user(self, user_id: int) -> dict:
        rows = self.repo.list_for_user(user_id)
        actors = self.user_repo.get_many(r.actor_id for r in rows if r.actor_id)
        out = []
        for r in rows:
            item = r.model_dump()
            actor = actors.get(r.actor_id)
            item['actor_name'] = actor.full_name if actor else None
            out.append(item)
        return {'notifications': out, 'unread_count': sum(1 for r in rows if not r.is_read)}

    def mark_read(self, notification_id: int, user_id: int) -> None:
        if not self.repo.mark_read(notification_id, user_id):
            raise NotFoundError("Notification not found")

    def mark_all_read(self, user_id: int) -> int:
        return self.repo.mark_all_read(user_id)


class ChannelService:
    """Channel creation, membership and channel listings."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ChannelRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def _views(self, channels: List[models.Channel]) -> List[dict]:
        ids = [c.id for c in channels]
        members = self.repo.member_counts(ids)
        posts = self.repo.post_counts(ids)
        creators = self.user_repo.get_many(c.created_by for c in channels)
        out = []
        for c in channels:
            item = c.model_dump()
            creator = creators.get(c.created_by)
            item['creator_first_name'] = creator.first_name if creator else None
            item['creator_last_name'] = creator.last_name if creator else None
            item['member_count'] = members.get(c.id, 0)
            item['post_count'] = posts.get(c.id, 0)
            out.append(item)
        return out

    @staticmethod
    def can_join(channel: models.Channel, user: models.User) -> bool:
        if channel.allowed_roles and user.role not in channel.allowed_roles:
            return False
        if channel.allowed_programs and user.program not in channel.allowed_programs:
            return False
        return True

    def create(self, user_id: int, name: str, description: Optional[str] = None,
               allowed_roles: Optional[List[str]] = None, allowed_programs: Optional[List[str]] = None) -> dict:
        """Create a channel; the creator becomes its first member."""
        channel = models.Channel(
            name=name.strip(),
            description=description or None,
            created_by=user_id,
            allowed_roles=[getattr(r, 'value', r) for r in allowed_roles] if allowed_roles else None,
            allowed_programs=list(allowed_programs) if allowed_programs else None,
        )
        with unit_of_work(self.session):
            self.repo.stage_create(channel)
            self.repo.stage_member(channel.id, user_id)
        self.session.refresh(channel)
        logger.info("channel_created id=%s by=%s", channel.id, user_id)
        return self._views([channel])[0]

    def list_mine(self, user_id: int) -> List[dict]:
        return self._views(self.repo.list_for_member(user_id))

    def discover(self, user_id: int) -> List[dict]:
        """Active channels the user has not joined but is allowed to join."""
        user = self.user_repo.get(user_id)
        joined = self.repo.member_channel_ids(user_id)
        candidates = [c for c in self.repo.list_active() if c.id not in joined and self.can_join(c, user)]
        return self._views(candidates)

    def get(self, channel_id: int, user_id: int) -> dict:
        channel = self.repo.get_active(channel_id)
        if not channel or not self.repo.is_member(channel_id, user_id):
            raise NotFoundError("Channel not found or you don't have access")
        return self._views([channel])[0]

    def join(self, channel_id: int, user_id: int) -> bool:
        channel = self.repo.get_active(channel_id)
        if not channel:
            raise NotFoundError("Channel not found")
        if not self.can_join(channel, self.user_repo.get(user_id)):
            raise PermissionDeniedError("You are not eligible to join this channel")
        return self.repo.add_member(channel_id, user_id)

    def leave(self, channel_id: int, user_id: int) -> None:
        if not self.repo.remove_member(channel_id, user_id):
            raise NotFoundError("You are not a member of this channel")

    def require_member(self, channel_id: int, user_id: int) -> models.Channel:
        channel = self.repo.get_active(channel_id)
        if not channel:
            raise NotFoundError("Channel not found")
        if not self.repo.is_member(channel_id, user_id):
            raise PermissionDeniedError("You don't have access to this channel")
        return channel


class PostService:
    """Posts, likes and comments inside channels."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.PostRepository(session)
        self.comment_repo = repositories.CommentRepository(session)
        self.channel_repo = repositories.ChannelRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.channels = ChannelService(session)
        self.notifications = NotificationService(session)

    def views(self, posts: List[models.Post], user_id: int) -> List[dict]:
        """Decorate posts with author, channel and like/comment counters."""
        ids = [p.id for p in posts]
        likes = self.repo.like_counts(ids)
        comments = self.repo.comment_counts(ids)
        liked = self.repo.liked_by(user_id, ids)
        authors = self.user_repo.get_many(p.user_id for p in posts)
        channels = self.channel_repo.get_many(p.channel_id for p in posts)
        out = []
        for p in posts:
            item = p.model_dump(exclude={'is_deleted'})
            channel = channels.get(p.channel_id)
            item['channel_name'] = channel.name if channel else None
            item.update(_author_fields(authors.get(p.user_id)))
            item['like_count'] = likes.get(p.id, 0)
            item['comment_count'] = comments.get(p.id, 0)
            item['user_has_liked'] = p.id in liked
            out.append(item)
        return out

    def feed(self, user_id: int) -> List[dict]:
        return self.views(self.repo.list_for_member(user_id), user_id)

    def channel_posts(self, channel_id: int, user_id: int) -> List[dict]:
        self.channels.require_member(channel_id, user_id)
        return self.views(self.repo.list_for_channel(channel_id), user_id)

    def create(self, user_id: int, channel_id: int, title: str, content: str) -> dict:
        self.channels.require_member(channel_id, user_id)
        post = self.repo.create(models.Post(channel_id=channel_id, user_id=user_id,
                                            title=title.strip(), content=content))
        return self.views([post], user_id)[0]

    def _visible_post(self, post_id: int, user_id: int) -> models.Post:
        post = self.repo.get(post_id)
        if not post or not self.channel_repo.is_member(post.channel_id, user_id):
            raise NotFoundError("Post not found")
        return post

    def delete(self, post_id: int, user_id: int) -> None:
        post = self.repo.get(post_id)
        if not post or post.user_id != user_id:
            raise NotFoundError("Post not found or unauthorized")
        self.repo.soft_delete(post)

    def toggle_like(self, post_id: int, user_id: int) -> bool:
        """Like or unlike a post; returns True when the post is now liked."""
        post = self._visible_post(post_id, user_id)
        existing = self.repo.get_like(post_id, user_id)
        if existing:
            self.repo.remove_like(existing)
            return False
        self.repo.stage_like(post_id, user_id)
        self.session.commit()
        self.notifications.notify(post.user_id, user_id, models.NotificationType.like,
                                  'liked your post', related_post_id=post.id,
                                  related_channel_id=post.channel_id)
        return True

    def _comment_view(self, comment: models.Comment, author: Optional[models.User]) -> dict:
        item = comment.model_dump(exclude={'is_deleted'})
        item.update(_author_fields(author))
        return item

    def comments(self, post_id: int, user_id: int) -> List[dict]:
        self._visible_post(post_id, user_id)
        rows = self.comment_repo.list_for_post(post_id)
        authors = self.user_repo.get_many(c.user_id for c in rows)
        return [self._comment_view(c, authors.get(c.user_id)) for c in rows]

    def add_comment(self, post_id: int, user_id: int, content: str) -> dict:
        post = self._visible_post(post_id, user_id)
        comment = models.Comment(post_id=post_id, user_id=user_id, content=content.strip())
        with unit_of_work(self.session):
            self.comment_repo.stage_create(comment)
        self.session.refresh(comment)
        self.notifications.notify(post.user_id, user_id, models.NotificationType.comment,
                                  'commented on your post', related_post_id=post.id,
                                  related_comment_id=comment.id, related_channel_id=post.channel_id)
        return self._comment_view(comment, self.user_repo.get(user_id))

    def delete_comment(self, comment_id: int, user_id: int) -> None:
        comment = self.comment_repo.get(comment_id)
        if not comment or comment.user_id != user_id:
            raise NotFoundError("Comment not found or unauthorized")
        self.comment_repo.soft_delete(comment)


class EventService:
    """Campus calendar events and RSVPs."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.EventRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.channel_repo = repositories.ChannelRepository(session)
        self.notifications = NotificationService(session)

    def _views(self, events: List[models.Event], user_id: int) -> List[dict]:
        ids = [e.id for e in events]
        counts = self.repo.attendee_counts(ids)
        subscribed = self.repo.subscribed_by(user_id, ids)
        creators = self.user_repo.get_many(e.created_by for e in events)
        channels = self.channel_repo.get_many(e.channel_id for e in events)
        out = []
        for e in events:
            item = e.model_dump(exclude={'is_deleted'})
            creator = creators.get(e.created_by)
            channel = channels.get(e.channel_id)
            item['creator_name'] = creator.full_name if creator else None
            item['channel_name'] = channel.name if channel else None
            item['attendee_count'] = counts.get(e.id, 0)
            item['user_is_subscribed'] = e.id in subscribed
            out.append(item)
        return out

    def list_events(self, user_id: int, month: Optional[int] = None, year: Optional[int] = None) -> List[dict]:
        """Upcoming and past events, optionally restricted to one month."""
        if (month is None) != (year is None):
            raise InvalidInputError("month and year must be given together")
        start = end = None
        if month is not None:
            if not 1 <= month <= 12:
                raise InvalidInputError("month must be between 1 and 12")
            if not 1900 <= year <= 2200:
                raise InvalidInputError("year must be between 1900 and 2200")
            start = datetime(year, month, 1)
            end = start + timedelta(days=monthrange(year, month)[1])
        return self._views(self.repo.list_between(start, end), user_id)

    def create(self, user_id: int, title: str, event_date: datetime, description: Optional[str] = None,
               end_date: Optional[datetime] = None, location: Optional[str] = None,
               channel_id: Optional[int] = None, is_all_day: bool = False,
               max_attendees: Optional[int] = None) -> dict:
        event_date = _naive_utc(event_date)
        end_date = _naive_utc(end_date)
        if end_date is not None and end_date < event_date:
            raise InvalidInputError("end_date must not be before event_date")
        if max_attendees is not None and max_attendees <= 0:
            raise InvalidInputError("max_attendees must be positive")
        if channel_id is not None and not self.channel_repo.get_active(channel_id):
            raise NotFoundError("Channel not found")
        event = self.repo.create(models.Event(
            title=title.strip(),
            description=description or None,
            event_date=event_date,
            end_date=end_date,
            location=location or None,
            created_by=user_id,
            channel_id=channel_id,
            is_all_day=is_all_day,
            max_attendees=max_attendees,
        ))
        return self._views([event], user_id)[0]

    def subscribe(self, event_id: int, user_id: int) -> None:
        event = self.repo.get_active(event_id)
        if not event:
            raise NotFoundError("Event not found")
        if self.repo.get_subscription(event_id, user_id):
            return
        attending = self.repo.attendee_counts([event_id]).get(event_id, 0)
        if event.max_attendees and attending >= event.max_attendees:
            raise ConflictError("Event is full")
        self.repo.stage_subscription(event_id, user_id)
        self.session.commit()
        self.notifications.notify(event.created_by, user_id, models.NotificationType.event_subscribe,
                                  'subscribed to your event', related_channel_id=event.channel_id)

    def unsubscribe(self, event_id: int, user_id: int) -> None:
        sub = self.repo.get_subscription(event_id, user_id)
        if sub:
            self.repo.remove_subscription(sub)

    def delete(self, event_id: int, user_id: int) -> None:
        """Soft-delete an event; only its creator or staff may do so."""
        event = self.repo.get_active(event_id)
        if not event:
            raise NotFoundError("Event not found")
        user = self.user_repo.get(user_id)
        if event.created_by != user_id and (not user or user.role != models.Role.staff.value):
            raise PermissionDeniedError("Unauthorized to delete this event")
        self.repo.soft_delete(event)


class SearchService:
    """Case-insensitive substring search over posts, channels and users."""
    PER_KIND_LIMIT = 10
    SNIPPET_LENGTH = 100

    def __init__(self, session: Session):
        self.post_repo = repositories.PostRepository(session)
        self.channel_repo = repositories.ChannelRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def _snippet(self, text: str) -> str:
        if len(text) > self.SNIPPET_LENGTH:
            return text[:self.SNIPPET_LENGTH] + "..."
        return text

    def search(self, user_id: int, query: str) -> List[dict]:
        term = (query or "").strip()
        if not term:
            return []
        results = []
        posts = self.post_repo.search_for_member(user_id, term, self.PER_KIND_LIMIT)
        channels = self.channel_repo.get_many(p.channel_id for p in posts)
        for p in posts:
            results.append({
                'type': 'post',
                'id': p.id,
                'title': p.title,
                'description': self._snippet(p.content),
                'channel_name': channels[p.channel_id].name if p.channel_id in channels else None,
                'created_at': p.created_at,
            })
        for c in self.channel_repo.search(term, self.PER_KIND_LIMIT):
            results.append({
                'type': 'channel',
                'id': c.id,
                'title': c.name,
                'description': c.description or 'No description',
                'created_at': c.created_at,
            })
        for u in self.user_repo.search(term, self.PER_KIND_LIMIT):
            results.append({
                'type': 'user',
                'id': u.id,
                'title': u.full_name,
                'description': ' - '.join(x for x in (u.role, u.program) if x) or 'User',
            })
        return results


class SwapService:
    """Course-swap marketplace: CRUD plus reciprocal match detection."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SwapRequestRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def _with_owner(self, rows: List[dict]) -> List[dict]:
        owners = self.user_repo.get_many(r['user_id'] for r in rows)
        for r in rows:
            owner = owners.get(r['user_id'])
            r['user_name'] = owner.full_name if owner else None
            r['user_email'] = owner.email if owner else None
        return rows

    def list_pool(self, user_id: int, course_code: Optional[str] = None, semester: Optional[str] = None,
                  instructor: Optional[str] = None) -> List[dict]:
        """All active requests matching the filters, each flagged `is_match`.

        The caller's own active requests are compared unfiltered, so a filter
        narrows what is shown without hiding which entries are matches.
        """
        pool = self.repo.list_active(course_code=course_code, semester=semester, instructor=instructor)
        own = self.repo.list_for_user(user_id, active_only=True)
        return self._with_owner(swaps.annotate_matches(own, pool))

    def list_mine(self, user_id: int) -> List[models.SwapRequest]:
        return self.repo.list_for_user(user_id)

    def create(self, user_id: int, course_code: str, course_name: str, current_section: str,
               desired_section: str, semester: str, instructor_current: Optional[str] = None,
               instructor_desired: Optional[str] = None, notes: Optional[str] = None) -> models.SwapRequest:
        if current_section == desired_section:
            raise InvalidInputError("desired_section must differ from current_section")
        request = self.repo.create(models.SwapRequest(
            user_id=user_id,
            course_code=course_code,
            course_name=course_name,
            current_section=current_section,
            desired_section=desired_section,
            instructor_current=instructor_current or None,
            instructor_desired=instructor_desired or None,
            semester=semester,
            notes=notes or None,
        ))
        logger.info("swap_request_created id=%s user=%s course=%s", request.id, user_id, course_code)
        return request

    def _owned(self, request_id: int, user_id: int) -> models.SwapRequest:
        request = self.repo.get_owned(request_id, user_id)
        if not request:
            raise NotFoundError("Swap request not found or unauthorized")
        return request

    def update_status(self, request_id: int, user_id: int, status: models.SwapStatus) -> models.SwapRequest:
        request = self._owned(request_id, user_id)
        request.status = models.SwapStatus(status).value
        request = self.repo.save(request)
        logger.info("swap_request_status id=%s status=%s", request.id, request.status)
        return request

    def delete(self, request_id: int, user_id: int) -> None:
        self.repo.delete(self._owned(request_id, user_id))

    def find_matches(self, request_id: int, user_id: int) -> List[dict]:
        """Every active request from another user reciprocal with one of mine."""
        request = self._owned(request_id, user_id)
        pool = self.repo.list_active(semester=request.semester)
        matches = [m.model_dump() for m in swaps.find_counterparts(request, pool)]
        return self._with_owner(matches)


class GpaService:
    """Semesters, courses and the GPA views built from them."""
    def __init__(self, session: Session):
        self.session = session
        self.semester_repo = repositories.SemesterRepository(session)
        self.course_repo = repositories.CourseRepository(session)

    def _owned_semester(self, semester_id: int, user_id: int) -> models.Semester:
        semester = self.semester_repo.get_owned(semester_id, user_id)
        if not semester:
            raise NotFoundError("Semester not found")
        return semester

    def list_semesters(self, user_id: int) -> List[models.Semester]:
        return gpa.sort_semesters(self.semester_repo.list_for_user(user_id))

    def _semester_view(self, semester: models.Semester, user_id: int) -> dict:
        courses = self.course_repo.list_for_semester(semester.id, user_id)
        totals = gpa.semester_totals(courses)
        item = semester.model_dump()
        item['courses'] = []
        for c in courses:
            course = c.model_dump()
            points = gpa.grade_points(c.grade)
            course['grade_points'] = float(points) if points is not None else None
            item['courses'].append(course)
        item.update(totals)
        return item

    def semester_detail(self, semester_id: int, user_id: int) -> dict:
        view = self._semester_view(self._owned_semester(semester_id, user_id), user_id)
        view.pop('total_points')
        return view

    def summary(self, user_id: int) -> dict:
        """CGPA over the whole course history plus every semester, newest first."""
        views = [self._semester_view(s, user_id) for s in self.list_semesters(user_id)]
        summary = gpa.cumulative_totals(views)
        for v in views:
            v.pop('total_points')
        summary['semesters'] = views
        return summary

    def create_semester(self, user_id: int, name: str, year: int, season: models.Season,
                        is_current: bool = False) -> models.Semester:
        semester = models.Semester(user_id=user_id, name=name.strip(), year=year,
                                   season=models.Season(season).value, is_current=is_current)
        with unit_of_work(self.session):
            if is_current:
                self.semester_repo.stage_clear_current(user_id)
            self.semester_repo.stage_create(semester)
        self.session.refresh(semester)
        return semester

    def set_current(self, semester_id: int, user_id: int) -> models.Semester:
        """Make one semester current, clearing the flag on all the others.

        Both steps share one transaction so the user never has zero or
        several current semesters after a failure.
        """
        semester = self._owned_semester(semester_id, user_id)
        with unit_of_work(self.session):
            self.semester_repo.stage_clear_current(user_id)
            semester.is_current = True
            semester.updated_at = models.utcnow()
            self.session.add(semester)
        self.session.refresh(semester)
        return semester

    def delete_semester(self, semester_id: int, user_id: int) -> None:
        """Delete a semester together with all of its courses."""
        semester = self._owned_semester(semester_id, user_id)
        with unit_of_work(self.session):
            removed = self.course_repo.stage_delete_for_semester(semester.id)
            self.semester_repo.stage_delete(semester)
        logger.info("semester_deleted id=%s courses=%s", semester_id, removed)

    def add_course(self, user_id: int, semester_id: int, course_code: str, course_name: str,
                   credit_hours: float, grade: models.Grade) -> models.Course:
        self._owned_semester(semester_id, user_id)
        grade = models.Grade(grade).value
        if credit_hours <= 0:
            raise InvalidInputError("credit_hours must be positive")
        return self.course_repo.create(models.Course(
            semester_id=semester_id,
            user_id=user_id,
            course_code=course_code,
            course_name=course_name,
            credit_hours=credit_hours,
            grade=grade,
        ))

    def update_course(self, course_id: int, user_id: int, changes: dict) -> models.Course:
        """Apply the non-None entries of `changes` to an owned course."""
        course = self.course_repo.get_owned(course_id, user_id)
        if not course:
            raise NotFoundError("Course not found")
        for field in ('course_code', 'course_name', 'credit_hours', 'grade'):
            value = changes.get(field)
            if value is not None:
                setattr(course, field, getattr(value, 'value', value))
        if course.credit_hours <= 0:
            raise InvalidInputError("credit_hours must be positive")
        return self.course_repo.save(course)

    def delete_course(self, course_id: int, user_id: int) -> None:
        course = self.course_repo.get_owned(course_id, user_id)
        if not course:
            raise NotFoundError("Course not found")
        self.course_repo.delete(course)
