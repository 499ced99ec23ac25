"""FastAPI application entrypoint and HTTP controllers.

Controllers are intentionally thin: they resolve the authenticated user,
pass `user.id` and the validated payload to a service, and return JSON.
Domain errors raised by services are mapped to status codes by a single
exception handler.

Endpoint groups:
- /auth/*           registration, login, session user
- /profile, /settings
- /channels/*, /feed, /posts/*, /comments/*
- /events/*
- /notifications/*
- /search
- /swaps/*          course-swap marketplace
- /gpa/*            semesters, courses, GPA summary
"""

import json
import logging
import os
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session

from . import models, services
from .auth import get_current_user
from .config import settings
from .database import create_db_and_tables, get_session
from .errors import CampusError
from .schemas import (
    ChannelIn, CommentIn, CourseIn, CourseUpdate, EventIn, LoginIn, PostIn, ProfileUpdate,
    RegisterIn, SemesterIn, SettingsUpdate, SwapRequestIn, SwapStatusIn, TokenOut,
)
from .utils.rate_limit import InMemoryRateLimiter

app = FastAPI(title="Campus Community API")
logger = logging.getLogger("campus.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
_login_rate_limiter = InMemoryRateLimiter()

# Wide-open CORS keeps a locally served frontend working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    context = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(context, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    context["status_code"] = response.status_code
    context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info("request_done %s", json.dumps(context, ensure_ascii=True))
    return response


@app.exception_handler(CampusError)
async def campus_error_handler(request: Request, exc: CampusError):
    if exc.status_code >= 500:
        logger.error("campus_error %s: %s", type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def _enforce_login_rate_limit(request: Request, email: str) -> str:
    key = f"{request.client.host if request.client else 'unknown'}:{email.strip().lower()}"
    allowed, retry_after = _login_rate_limiter.allow(
        key, settings.LOGIN_RATE_LIMIT_PER_MIN, settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS
    )
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"too many login attempts; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )
    return key


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


# --- auth -----------------------------------------------------------------

@app.get('/auth/signup-options')
def signup_options():
    """E-mail domains accepted at registration and the role each grants."""
    return services.AuthService.signup_options()


@app.get('/auth/email-available')
def email_available(email: str, db: Session = Depends(get_session)):
    return {'email': email, 'available': services.AuthService(db).email_available(email)}


@app.post('/auth/register', status_code=201, response_model=TokenOut)
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Create an account and return an access token.

    The role comes from the e-mail domain; unknown domains are rejected
    with 400 and an already registered e-mail with 409.
    """
    _, token = services.AuthService(db).register(
        payload.first_name, payload.last_name, payload.email, payload.password,
        program=payload.program, class_of=payload.class_of,
    )
    return TokenOut(access_token=token)


@app.post('/auth/login', response_model=TokenOut)
def login(payload: LoginIn, request: Request, db: Session = Depends(get_session)):
    """Authenticate a user and return a signed JWT access token."""
    key = _enforce_login_rate_limit(request, payload.email)
    token = services.AuthService(db).authenticate(payload.email, payload.password)
    _login_rate_limiter.reset(key)
    return TokenOut(access_token=token)


@app.get('/auth/me')
def me(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ProfileService(db).get_profile(user.id)


# --- profile & settings ---------------------------------------------------

@app.get('/profile')
def get_profile(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ProfileService(db).get_profile(user.id)


@app.put('/profile')
def update_profile(payload: ProfileUpdate, db: Session = Depends(get_session),
                   user: models.User = Depends(get_current_user)):
    return services.ProfileService(db).update_profile(
        user.id, payload.first_name, payload.last_name, payload.class_of
    )


@app.get('/settings')
def get_settings(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Return the user's settings, creating defaults on first access."""
    return services.ProfileService(db).get_settings(user.id)


@app.patch('/settings')
def update_settings(payload: SettingsUpdate, db: Session = Depends(get_session),
                    user: models.User = Depends(get_current_user)):
    return services.ProfileService(db).update_settings(user.id, payload.model_dump(exclude_unset=True))


# --- channels, posts, comments --------------------------------------------

@app.post('/channels', status_code=201)
def create_channel(payload: ChannelIn, db: Session = Depends(get_session),
                   user: models.User = Depends(get_current_user)):
    return services.ChannelService(db).create(
        user.id, payload.name, payload.description,
        allowed_roles=payload.allowed_roles, allowed_programs=payload.allowed_programs,
    )


@app.get('/channels')
def list_channels(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Channels the user belongs to, with member and post counts."""
    return services.ChannelService(db).list_mine(user.id)


@app.get('/channels/discover')
def discover_channels(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ChannelService(db).discover(user.id)


@app.get('/channels/{channel_id}')
def get_channel(channel_id: int, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    return services.ChannelService(db).get(channel_id, user.id)


@app.post('/channels/{channel_id}/join')
def join_channel(channel_id: int, db: Session = Depends(get_session),
                 user: models.User = Depends(get_current_user)):
    joined = services.ChannelService(db).join(channel_id, user.id)
    return {'status': 'ok', 'joined': joined}


@app.post('/channels/{channel_id}/leave')
def leave_channel(channel_id: int, db: Session = Depends(get_session),
                  user: models.User = Depends(get_current_user)):
    services.ChannelService(db).leave(channel_id, user.id)
    return {'status': 'ok'}


@app.get('/channels/{channel_id}/posts')
def channel_posts(channel_id: int, db: Session = Depends(get_session),
                  user: models.User = Depends(get_current_user)):
    return services.PostService(db).channel_posts(channel_id, user.id)


@app.get('/feed')
def feed(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Latest posts across all of the user's channels."""
    return services.PostService(db).feed(user.id)


@app.post('/posts', status_code=201)
def create_post(payload: PostIn, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    return services.PostService(db).create(user.id, payload.channel_id, payload.title, payload.content)


@app.delete('/posts/{post_id}', status_code=204)
def delete_post(post_id: int, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    services.PostService(db).delete(post_id, user.id)
    return Response(status_code=204)


@app.post('/posts/{post_id}/like')
def toggle_like(post_id: int, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    return {'liked': services.PostService(db).toggle_like(post_id, user.id)}


@app.get('/posts/{post_id}/comments')
def list_comments(post_id: int, db: Session = Depends(get_session),
                  user: models.User = Depends(get_current_user)):
    return services.PostService(db).comments(post_id, user.id)


@app.post('/posts/{post_id}/comments', status_code=201)
def add_comment(post_id: int, payload: CommentIn, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    return services.PostService(db).add_comment(post_id, user.id, payload.content)


@app.delete('/comments/{comment_id}', status_code=204)
def delete_comment(comment_id: int, db: Session = Depends(get_session),
                   user: models.User = Depends(get_current_user)):
    services.PostService(db).delete_comment(comment_id, user.id)
    return Response(status_code=204)


# --- events ---------------------------------------------------------------

@app.get('/events')
def list_events(month: Optional[int] = None, year: Optional[int] = Query(default=None, ge=1900, le=2200),
                db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    """Events ordered by date; pass both `month` and `year` to narrow to a month."""
    return services.EventService(db).list_events(user.id, month=month, year=year)


@app.post('/events', status_code=201)
def create_event(payload: EventIn, db: Session = Depends(get_session),
                 user: models.User = Depends(get_current_user)):
    return services.EventService(db).create(user.id, **payload.model_dump())


@app.post('/events/{event_id}/subscribe')
def subscribe_event(event_id: int, db: Session = Depends(get_session),
                    user: models.User = Depends(get_current_user)):
    services.EventService(db).subscribe(event_id, user.id)
    return {'status': 'ok', 'subscribed': True}


@app.delete('/events/{event_id}/subscribe')
def unsubscribe_event(event_id: int, db: Session = Depends(get_session),
                      user: models.User = Depends(get_current_user)):
    services.EventService(db).unsubscribe(event_id, user.id)
    return {'status': 'ok', 'subscribed': False}


@app.delete('/events/{event_id}', status_code=204)
def delete_event(event_id: int, db: Session = Depends(get_session),
                 user: models.User = Depends(get_current_user)):
    services.EventService(db).delete(event_id, user.id)
    return Response(status_code=204)


# --- notifications --------------------------------------------------------

@app.get('/notifications')
def list_notifications(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """The 50 most recent notifications plus the unread count."""
    return services.NotificationService(db).list_for_user(user.id)


@app.post('/notifications/read-all')
def read_all_notifications(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return {'updated': services.NotificationService(db).mark_all_read(user.id)}


@app.post('/notifications/{notification_id}/read')
def read_notification(notification_id: int, db: Session = Depends(get_session),
                      user: models.User = Depends(get_current_user)):
    services.NotificationService(db).mark_read(notification_id, user.id)
    return {'status': 'ok'}


# --- search ---------------------------------------------------------------

@app.get('/search')
def search(q: str = '', db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Search posts in the user's channels, channels and users."""
    return services.SearchService(db).search(user.id, q)


# --- course swap ----------------------------------------------------------

@app.get('/swaps')
def list_swaps(course_code: Optional[str] = None, semester: Optional[str] = None,
               instructor: Optional[str] = None, db: Session = Depends(get_session),
               user: models.User = Depends(get_current_user)):
    """Active swap requests, each flagged `is_match` against the user's own."""
    return services.SwapService(db).list_pool(
        user.id, course_code=course_code, semester=semester, instructor=instructor
    )


@app.get('/swaps/mine')
def my_swaps(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.SwapService(db).list_mine(user.id)


@app.post('/swaps', status_code=201)
def create_swap(payload: SwapRequestIn, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    return services.SwapService(db).create(user.id, **payload.model_dump())


@app.patch('/swaps/{request_id}/status')
def update_swap_status(request_id: int, payload: SwapStatusIn, db: Session = Depends(get_session),
                       user: models.User = Depends(get_current_user)):
    return services.SwapService(db).update_status(request_id, user.id, payload.status)


@app.delete('/swaps/{request_id}', status_code=204)
def delete_swap(request_id: int, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    services.SwapService(db).delete(request_id, user.id)
    return Response(status_code=204)


@app.get('/swaps/{request_id}/matches')
def swap_matches(request_id: int, db: Session = Depends(get_session),
                 user: models.User = Depends(get_current_user)):
    """All reciprocal counterparts for one of the user's requests."""
    return services.SwapService(db).find_matches(request_id, user.id)


# --- GPA ------------------------------------------------------------------

@app.get('/gpa/summary')
def gpa_summary(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Cumulative GPA and every semester with its courses, newest first."""
    return services.GpaService(db).summary(user.id)


@app.get('/gpa/semesters')
def list_semesters(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GpaService(db).list_semesters(user.id)


@app.post('/gpa/semesters', status_code=201)
def create_semester(payload: SemesterIn, db: Session = Depends(get_session),
                    user: models.User = Depends(get_current_user)):
    return services.GpaService(db).create_semester(
        user.id, payload.name, payload.year, payload.season, is_current=payload.is_current
    )


@app.get('/gpa/semesters/{semester_id}')
def semester_detail(semester_id: int, db: Session = Depends(get_session),
                    user: models.User = Depends(get_current_user)):
    return services.GpaService(db).semester_detail(semester_id, user.id)


@app.post('/gpa/semesters/{semester_id}/current')
def set_current_semester(semester_id: int, db: Session = Depends(get_session),
                         user: models.User = Depends(get_current_user)):
    return services.GpaService(db).set_current(semester_id, user.id)


@app.delete('/gpa/semesters/{semester_id}', status_code=204)
def delete_semester(semester_id: int, db: Session = Depends(get_session),
                    user: models.User = Depends(get_current_user)):
    services.GpaService(db).delete_semester(semester_id, user.id)
    return Response(status_code=204)


@app.post('/gpa/courses', status_code=201)
def add_course(payload: CourseIn, db: Session = Depends(get_session),
               user: models.User = Depends(get_current_user)):
    return services.GpaService(db).add_course(user.id, **payload.model_dump())


@app.patch('/gpa/courses/{course_id}')
def update_course(course_id: int, payload: CourseUpdate, db: Session = Depends(get_session),
                  user: models.User = Depends(get_current_user)):
    return services.GpaService(db).update_course(course_id, user.id, payload.model_dump(exclude_unset=True))


@app.delete('/gpa/courses/{course_id}', status_code=204)
def delete_course(course_id: int, db: Session = Depends(get_session),
                  user: models.User = Depends(get_current_user)):
    services.GpaService(db).delete_course(course_id, user.id)
    return Response(status_code=204)
