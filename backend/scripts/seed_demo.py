"""CLI script to fill a local database with demo accounts and content.
Usage: python scripts/seed_demo.py [--password PASSWORD]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `campus` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from campus.database import create_db_and_tables, engine
from campus import models, repositories, services

DEMO_USERS = [
    ('Ayesha', 'Khan', 'ayesha.khan@st.habib.edu.pk', 'CS', 2026),
    ('Bilal', 'Ahmed', 'bilal.ahmed@st.habib.edu.pk', 'CS', 2026),
    ('Sara', 'Malik', 'sara.malik@sse.habib.edu.pk', None, None),
]


def _user(session: Session, first, last, email, program, class_of, password):
    existing = repositories.UserRepository(session).get_by_email(email)
    if existing:
        print(f'User {email} already exists, skipping')
        return existing, False
    user, _ = services.AuthService(session).register(first, last, email, password,
                                                     program=program, class_of=class_of)
    print(f'Created {user.role} {email}')
    return user, True


def main(password: str = 'demo1234'):
    """Create demo users and, for newly created ones, sample content.

    Content is only added alongside users created in this run so that the
    script can be re-run against the same database.
    """
    create_db_and_tables()
    with Session(engine) as session:
        created = {}
        for first, last, email, program, class_of in DEMO_USERS:
            user, is_new = _user(session, first, last, email, program, class_of, password)
            if is_new:
                created[email] = user
        if not created:
            print('Nothing to seed')
            return

        ayesha = created.get(DEMO_USERS[0][2])
        bilal = created.get(DEMO_USERS[1][2])
        if ayesha:
            channel = services.ChannelService(session).create(ayesha.id, 'CS Batch 2026', 'Batch announcements')
            services.PostService(session).create(ayesha.id, channel['id'], 'Welcome', 'Say hi to your batch!')
            gpa_svc = services.GpaService(session)
            semester = gpa_svc.create_semester(ayesha.id, 'Fall 2024', 2024, models.Season.fall, is_current=True)
            for code, name, hours, grade in [('CS 101', 'Programming Fundamentals', 3, 'A'),
                                             ('MATH 101', 'Calculus I', 3, 'B+'),
                                             ('CS 102', 'Data Structures', 4, 'IP')]:
                gpa_svc.add_course(ayesha.id, semester.id, code, name, hours, grade)
            print(f'Seeded channel {channel["name"]!r} and semester {semester.name!r}')
        if ayesha and bilal:
            swap_svc = services.SwapService(session)
            swap_svc.create(ayesha.id, 'CS 201', 'Algorithms', 'L1', 'L2', 'Spring 2025')
            swap_svc.create(bilal.id, 'CS 201', 'Algorithms', 'L2', 'L1', 'Spring 2025')
            print('Seeded a reciprocal swap pair for CS 201')
        print(f'Done. Demo password: {password}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--password', default='demo1234', help='Password for created demo accounts')
    args = parser.parse_args()
    main(password=args.password)
