from datetime import datetime, timedelta, timezone

import pytest

from squad_planner.core.errors import CheckinClosed, Conflict, Forbidden, InvalidTransition
from squad_planner.modules.sessions.schemas import SessionCreate, SessionUpdate
from squad_planner.modules.sessions.service import SessionService
from tests.conftest import ALICE, BOB, CAROL
from tests.fakes import seed_profile, seed_rsvp, seed_session, seed_squad

START = datetime(2099, 6, 1, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(rows, messenger):
    return SessionService(rows, messenger)


@pytest.fixture
def squad(rows):
    return seed_squad(rows, ALICE, members=[BOB, CAROL], invite_code="ABC234")


def test_create_session_applies_defaults_and_answers_creator(rows, service, squad):
    view = service.create_session(SessionCreate(squad_id=squad["id"], title="Scrims", scheduled_at=START), BOB)

    assert view.status == "proposed"
    assert view.duration_minutes == 120
    assert view.auto_confirm_threshold == 3
    assert view.my_rsvp == "present"
    assert view.rsvp_counts.present == 1
    assert rows.tables["session_rsvps"][0]["user_id"] == BOB.id


def test_respond_overwrites_previous_answer(rows, service, squad):
    session = seed_session(rows, squad, ALICE, START)

    service.respond(session["id"], "present", BOB)
    service.respond(session["id"], "absent", BOB)

    answers = [r for r in rows.tables["session_rsvps"] if r["user_id"] == BOB.id]
    assert [a["response"] for a in answers] == ["absent"]
    assert service.get_session(session["id"], BOB.id).my_rsvp == "absent"


def test_respond_refused_on_cancelled_session(rows, service, squad):
    session = seed_session(rows, squad, ALICE, START, status="cancelled")
    with pytest.raises(InvalidTransition):
        service.respond(session["id"], "present", BOB)


def test_respond_is_announced_in_squad_chat(rows, service, squad):
    session = seed_session(rows, squad, ALICE, START)
    seed_profile(rows, BOB)

    service.respond(session["id"], "maybe", BOB)

    message = rows.tables["messages"][-1]
    assert message["squad_id"] == squad["id"]
    assert message["content"] == "bob answered Maybe for Ranked grind"


def test_list_for_squad_is_chronological_with_counts(rows, service, squad):
    later = seed_session(rows, squad, ALICE, START + timedelta(days=1))
    sooner = seed_session(rows, squad, ALICE, START)
    seed_rsvp(rows, later, ALICE, "present")
    seed_rsvp(rows, later, BOB, "maybe")

    views = service.list_for_squad(squad["id"], BOB.id)

    assert [v.id for v in views] == [sooner["id"], later["id"]]
    assert views[1].rsvp_counts.maybe == 1
    assert views[1].my_rsvp == "maybe"
    assert views[0].my_rsvp is None


def test_list_upcoming_only_covers_my_squads_and_the_future(rows, service, squad):
    other = seed_squad(rows, CAROL, invite_code="XYZ789")
    now = datetime(2099, 1, 1, tzinfo=timezone.utc)
    seed_session(rows, squad, ALICE, now - timedelta(days=1), title="past")
    seed_session(rows, squad, ALICE, now + timedelta(days=1), title="mine")
    seed_session(rows, other, CAROL, now + timedelta(days=1), title="not mine")

    views = service.list_upcoming(BOB.id, now=now)

    assert [v.title for v in views] == ["mine"]


def test_list_upcoming_without_squads(service):
    assert service.list_upcoming("nobody") == []


def test_list_views_match_the_detail_view(rows, service, squad):
    session = seed_session(rows, squad, ALICE, START, status="confirmed")
    seed_rsvp(rows, session, ALICE, "present")
    seed_rsvp(rows, session, BOB, "present")
    service.check_in(session["id"], BOB, now=START)

    detail = service.get_session(session["id"], BOB.id)
    listed = service.list_for_squad(squad["id"], BOB.id)
    upcoming = service.list_upcoming(BOB.id, now=START - timedelta(hours=1))

    assert [c.user_id for c in detail.checkins] == [BOB.id]
    assert detail.attendance_rate == 50
    assert listed == [detail]
    assert upcoming == [detail]


def test_confirm_and_cancel_are_creator_only(rows, service, squad):
    session = seed_session(rows, squad, ALICE, START)

    with pytest.raises(Forbidden):
        service.confirm(session["id"], BOB)

    assert service.confirm(session["id"], ALICE).status == "confirmed"
    assert rows.tables["messages"][0]["content"] == "Ranked grind is confirmed for 2099-06-01 20:00 UTC"
    assert service.cancel(session["id"], ALICE).status == "cancelled"
    with pytest.raises(InvalidTransition):
        service.confirm(session["id"], ALICE)


def test_update_session_by_creator(rows, service, squad):
    session = seed_session(rows, squad, ALICE, START, duration_minutes=60)

    with pytest.raises(Forbidden):
        service.update_session(session["id"], SessionUpdate(duration_minutes=90), BOB)

    updated = service.update_session(session["id"], SessionUpdate(duration_minutes=90, title="Finals"), ALICE)
    assert updated.duration_minutes == 90
    assert updated.title == "Finals"


def test_check_in_window_and_duplicates(rows, service, squad):
    session = seed_session(rows, squad, ALICE, START, status="confirmed")
    seed_rsvp(rows, session, BOB, "present")
    seed_rsvp(rows, session, CAROL, "present")

    with pytest.raises(CheckinClosed):
        service.check_in(session["id"], BOB, now=START - timedelta(hours=1))

    service.check_in(session["id"], BOB, now=START - timedelta(minutes=10))
    with pytest.raises(Conflict):
        service.check_in(session["id"], BOB, now=START)

    view = service.get_session(session["id"], BOB.id)
    assert len(view.checkins) == 1
    assert view.attendance_rate == 50


def test_check_in_closed_for_proposed_session(rows, service, squad):
    session = seed_session(rows, squad, ALICE, START)
    with pytest.raises(CheckinClosed):
        service.check_in(session["id"], BOB, now=START)
