"""Credit-weighted GPA computation.

Pure functions over course rows; nothing here touches the database.
Courses may be `models.Course` instances or plain mappings with `grade`
and `credit_hours` keys.

Arithmetic is done in `Decimal` so rounding to two places is a true
half-up rounding of the exact quotient instead of a float artefact.
"""

from collections.abc import Mapping
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from .errors import InvalidInputError

# IP (in progress) has no points: it is excluded from the average, not zero.
GRADE_POINTS = {
    "A+": Decimal("4.00"),
    "A": Decimal("4.00"),
    "A-": Decimal("3.67"),
    "B+": Decimal("3.33"),
    "B": Decimal("3.00"),
    "B-": Decimal("2.67"),
    "C+": Decimal("2.33"),
    "C": Decimal("2.00"),
    "C-": Decimal("1.67"),
    "F": Decimal("0.00"),
    "IP": None,
}

SEASON_RANK = {"Fall": 3, "Summer": 2, "Spring": 1}

_TWO_PLACES = Decimal("0.01")
_ZERO = Decimal("0")


def _value(item, name):
    if isinstance(item, Mapping):
        return item[name]
    return getattr(item, name)


def _grade_key(grade) -> str:
    return getattr(grade, "value", grade)


def grade_points(grade) -> Optional[Decimal]:
    """Return the points for a letter grade, or None for IP.

    Raises InvalidInputError for a grade outside the fixed scale.
    """
    key = _grade_key(grade)
    if key not in GRADE_POINTS:
        raise InvalidInputError(f"unknown grade: {key}")
    return GRADE_POINTS[key]


def _credits(course) -> Decimal:
    hours = Decimal(str(_value(course, "credit_hours")))
    if hours <= 0:
        raise InvalidInputError("credit_hours must be positive")
    return hours


def round_gpa(points: Decimal, earned: Decimal) -> float:
    """Divide and round half-up to 2 dp; zero when nothing was earned."""
    if earned <= 0:
        return 0.0
    return float((points / earned).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def semester_totals(courses: Iterable) -> dict:
    """Aggregate one semester's courses.

    Returns `gpa`, `total_credits` (every course, IP included),
    `earned_credits` and `total_points` (graded courses only). An empty
    list yields a zero GPA.
    """
    total_points = _ZERO
    earned = _ZERO
    total = _ZERO
    for course in courses:
        hours = _credits(course)
        points = grade_points(_value(course, "grade"))
        if points is not None:
            total_points += points * hours
            earned += hours
        total += hours
    return {
        "gpa": round_gpa(total_points, earned),
        "total_credits": float(total),
        "earned_credits": float(earned),
        "total_points": total_points,
    }


def cumulative_totals(semesters: Iterable[dict]) -> dict:
    """Combine `semester_totals` results into a CGPA.

    The CGPA is total points over total earned credits across the whole
    history, not the mean of the per-semester GPAs.
    """
    total_points = _ZERO
    earned = _ZERO
    total = _ZERO
    for sem in semesters:
        total_points += sem["total_points"]
        earned += Decimal(str(sem["earned_credits"]))
        total += Decimal(str(sem["total_credits"]))
    return {
        "cgpa": round_gpa(total_points, earned),
        "total_credits": float(total),
        "earned_credits": float(earned),
    }


def semester_sort_key(semester):
    return (_value(semester, "year"), SEASON_RANK.get(_grade_key(_value(semester, "season")), 0))


def sort_semesters(semesters: Iterable) -> List:
    """Most recent first: year descending, then Fall > Summer > Spring."""
    return sorted(semesters, key=semester_sort_key, reverse=True)
