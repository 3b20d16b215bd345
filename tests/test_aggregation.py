from datetime import datetime, timezone

import pytest

from squad_planner.modules.sessions.aggregation import (
    attendance_rate, build_session_view, build_squad_view, count_responses, member_count, my_response,
)
from squad_planner.modules.sessions.schemas import CheckinRecord, RsvpRecord, SessionRecord
from squad_planner.modules.squads.schemas import SquadRecord


def _rsvp(user_id, response, session_id="s1"):
    return RsvpRecord(session_id=session_id, user_id=user_id, response=response)


def _session(**values):
    values.setdefault("id", "s1")
    values.setdefault("squad_id", "q1")
    values.setdefault("scheduled_at", datetime(2026, 5, 1, 20, 0, tzinfo=timezone.utc))
    values.setdefault("created_by", "u1")
    return SessionRecord(**values)


def test_counts_example_and_my_response():
    rsvps = [_rsvp("u1", "present"), _rsvp("u2", "present"), _rsvp("u3", "absent"), _rsvp("u4", "maybe")]
    counts = count_responses(rsvps)
    assert (counts.present, counts.absent, counts.maybe) == (2, 1, 1)
    assert my_response(rsvps, "u4") == "maybe"


@pytest.mark.parametrize("responses", [
    [],
    ["present"],
    ["absent", "absent", "maybe"],
    ["maybe"] * 7 + ["present"] * 3,
])
def test_counts_partition_every_response(responses):
    rsvps = [_rsvp(f"u{i}", r) for i, r in enumerate(responses)]
    assert count_responses(rsvps).total == len(responses)


def test_unknown_responses_are_ignored(caplog):
    rsvps = [_rsvp("u1", "present"), {"user_id": "u2", "response": "yes", "session_id": "s1"}]
    counts = count_responses(rsvps)
    assert counts.total == 1
    assert "unknown response" in caplog.text
    assert my_response(rsvps, "u2") is None


def test_my_response_on_empty_input():
    assert my_response([], "u1") is None
    assert my_response(None, "u1") is None
    assert my_response([_rsvp("u1", "absent")], None) is None


def test_member_count_prefers_live_rows():
    assert member_count([{"user_id": "a"}, {"user_id": "b"}], stored_count=9) == 2
    assert member_count([], stored_count=9) == 0
    assert member_count(None, stored_count=9) == 9
    assert member_count(None) == 0


@pytest.mark.parametrize("checkins,present,expected", [
    (0, 0, 0),
    (3, 0, 0),
    (1, 3, 33),
    (2, 3, 67),
    (1, 8, 13),  # 12.5 rounds up
    (4, 4, 100),
])
def test_attendance_rate(checkins, present, expected):
    assert attendance_rate(checkins, present) == expected


def test_session_view_is_built_from_rows():
    rsvps = [_rsvp("u1", "present"), _rsvp("u2", "present"), _rsvp("u3", "maybe")]
    checkins = [CheckinRecord(session_id="s1", user_id="u1")]
    view = build_session_view(_session(duration_minutes=None), rsvps, checkins, user_id="u3")

    assert view.duration_minutes == 120
    assert view.rsvp_counts.present == 2
    assert view.my_rsvp == "maybe"
    assert view.attendance_rate == 50


def test_squad_view_falls_back_to_stored_counter():
    squad = SquadRecord(
        id="q1", name="Raid Night", game="Valorant", invite_code="ABC234",
        owner_id="u1", member_count=4, created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
    assert build_squad_view(squad, [{"user_id": "u1"}]).member_count == 1
    assert build_squad_view(squad, None).member_count == 4
