from campus import swaps


def req(id, user_id, current, desired, course="CS 101", semester="Fall 2024"):
    return {
        "id": id,
        "user_id": user_id,
        "course_code": course,
        "current_section": current,
        "desired_section": desired,
        "semester": semester,
    }


def test_reciprocal_pair_matches_both_ways():
    a = req(1, 1, "A", "B")
    b = req(2, 2, "B", "A")
    assert swaps.is_reciprocal(a, b)
    assert swaps.is_reciprocal(b, a)


def test_section_comparison_is_case_sensitive():
    a = req(1, 1, "A", "B")
    b = req(2, 2, "b", "A")
    assert not swaps.is_reciprocal(a, b)
    assert not swaps.is_reciprocal(b, a)


def test_request_never_matches_itself():
    a = req(1, 1, "A", "A")
    assert not swaps.is_reciprocal(a, a)
    assert swaps.annotate_matches([a], [a])[0]["is_match"] is False


def test_different_semester_or_course_does_not_match():
    a = req(1, 1, "A", "B")
    assert not swaps.is_reciprocal(a, req(2, 2, "B", "A", semester="Spring 2025"))
    assert not swaps.is_reciprocal(a, req(3, 2, "B", "A", course="CS 102"))


def test_same_owner_does_not_match():
    assert not swaps.is_reciprocal(req(1, 1, "A", "B"), req(2, 1, "B", "A"))


def test_annotate_flags_only_counterparts_in_pool_order():
    mine = req(1, 1, "A", "B")
    pool = [req(5, 3, "C", "A"), req(4, 2, "B", "A"), mine, req(3, 4, "B", "A")]
    out = swaps.annotate_matches([mine], pool)
    assert [r["id"] for r in out] == [5, 4, 1, 3]
    assert [r["is_match"] for r in out] == [False, True, False, True]
    assert out[1]["course_code"] == "CS 101"


def test_empty_inputs_return_unflagged_results():
    assert swaps.annotate_matches([], []) == []
    out = swaps.annotate_matches([], [req(1, 1, "A", "B")])
    assert out[0]["is_match"] is False
    assert swaps.find_counterparts(req(1, 1, "A", "B"), []) == []


def test_find_counterparts_returns_every_match():
    mine = req(1, 1, "A", "B")
    pool = [req(2, 2, "B", "A"), req(3, 3, "B", "C"), req(4, 4, "B", "A")]
    assert [r["id"] for r in swaps.find_counterparts(mine, pool)] == [2, 4]


def test_works_with_model_instances():
    from campus.models import SwapRequest
    a = SwapRequest(id=1, user_id=1, course_code="MATH 201", course_name="Calc", current_section="L1",
                    desired_section="L2", semester="Spring 2025")
    b = SwapRequest(id=2, user_id=2, course_code="MATH 201", course_name="Calc", current_section="L2",
                    desired_section="L1", semester="Spring 2025")
    out = swaps.annotate_matches([a], [a, b])
    assert [r["is_match"] for r in out] == [False, True]
