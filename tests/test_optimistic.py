import asyncio
import copy
from datetime import datetime, timezone

import pytest

from squad_planner.client import query_keys
from squad_planner.client.hydration import to_json
from squad_planner.client.mutations import ClientMutations, apply_session_edit, remove_squad
from squad_planner.client.optimistic import MutationError, OptimisticMutation, is_optimistic_id, optimistic_id
from squad_planner.client.queries import ClientQueries
from squad_planner.client.query_cache import QueryCache
from squad_planner.core.errors import Conflict, InvalidReference, TransportError
from squad_planner.modules.profiles.service import ProfileService
from squad_planner.modules.sessions.schemas import SessionCreate, SessionUpdate
from squad_planner.modules.sessions.service import SessionService
from squad_planner.modules.squads.service import SquadService
from tests.conftest import ALICE, BOB
from tests.fakes import FakeRows, seed_profile, seed_rsvp, seed_session, seed_squad

SQUADS = [{"id": "q1", "name": "A"}, {"id": "q2", "name": "B"}, {"id": "q3", "name": "C"}]


def _leave_mutation(cache, write):
    return OptimisticMutation(
        cache,
        write,
        query_keys=[query_keys.squads.list()],
        update_cache=lambda old, squad_id, key: remove_squad(old, squad_id),
        invalidate_keys=[query_keys.squads.all],
    )


def test_optimistic_ids():
    temp = optimistic_id()
    assert is_optimistic_id(temp)
    assert temp != optimistic_id()
    assert not is_optimistic_id("8c1f0e4e-0000-4000-8000-000000000000")
    assert not is_optimistic_id("Optimistic-1-x")
    assert not is_optimistic_id(None)


@pytest.mark.asyncio
async def test_leave_squad_failure_restores_original_list_in_order():
    cache = QueryCache()
    cache._write(query_keys.squads.list(), copy.deepcopy(SQUADS))
    release = asyncio.Event()

    async def failing_write(squad_id):
        await release.wait()
        raise TransportError()

    pending = asyncio.ensure_future(_leave_mutation(cache, failing_write).execute("q2"))
    await asyncio.sleep(0)
    assert [s["id"] for s in cache.get_query_data(query_keys.squads.list())] == ["q1", "q3"]
    release.set()

    with pytest.raises(MutationError) as raised:
        await pending
    assert raised.value.message == "Connection error. Try again."
    assert cache.get_query_data(query_keys.squads.list()) == SQUADS
    assert cache.is_stale(query_keys.squads.list())


@pytest.mark.asyncio
async def test_speculative_update_is_visible_synchronously():
    cache = QueryCache()
    cache._write(query_keys.squads.list(), copy.deepcopy(SQUADS))

    async def write(squad_id):
        return None

    mutation = _leave_mutation(cache, write)
    mutation.begin("q1")
    assert [s["id"] for s in cache.get_query_data(query_keys.squads.list())] == ["q2", "q3"]


@pytest.mark.asyncio
async def test_rollback_removes_entries_that_had_no_data():
    cache = QueryCache()

    async def failing_write(_):
        raise RuntimeError("socket closed")

    with pytest.raises(MutationError):
        await _leave_mutation(cache, failing_write).execute("q1")
    assert not cache.has_query(query_keys.squads.list())
    assert query_keys.squads.list() not in cache.keys()


@pytest.mark.asyncio
async def test_domain_errors_keep_their_message():
    cache = QueryCache()

    async def join(_):
        raise Conflict("You are already a member of this squad")

    mutation = OptimisticMutation(cache, join, invalidate_keys=[query_keys.squads.all])
    with pytest.raises(MutationError) as raised:
        await mutation.execute("ABC234")
    assert raised.value.message == "You are already a member of this squad"


@pytest.mark.asyncio
async def test_settle_runs_on_success():
    cache = QueryCache()
    cache._write(query_keys.squads.list(), copy.deepcopy(SQUADS))

    async def write(squad_id):
        return "done"

    assert await _leave_mutation(cache, write).execute("q1") == "done"
    assert cache.is_stale(query_keys.squads.list())
    assert [s["id"] for s in cache.get_query_data(query_keys.squads.list())] == ["q2", "q3"]


@pytest.mark.asyncio
async def test_write_finishes_even_if_caller_stops_waiting():
    cache = QueryCache()
    cache._write(query_keys.squads.list(), copy.deepcopy(SQUADS))
    release = asyncio.Event()
    finished = asyncio.Event()

    async def failing_write(squad_id):
        await release.wait()
        finished.set()
        raise TransportError()

    caller = asyncio.ensure_future(_leave_mutation(cache, failing_write).execute("q1"))
    await asyncio.sleep(0)
    caller.cancel()
    release.set()
    await finished.wait()
    await asyncio.sleep(0)

    assert cache.get_query_data(query_keys.squads.list()) == SQUADS
    assert cache.is_stale(query_keys.squads.list())


@pytest.mark.asyncio
async def test_sequential_duration_edits_settle_on_the_last_one():
    cache = QueryCache()
    key = query_keys.sessions.detail("s1")
    cache._write(key, {"id": "s1", "duration_minutes": 60})
    first_release = asyncio.Event()

    async def write(minutes):
        if minutes == 90:
            await first_release.wait()
        return minutes

    def edit():
        return OptimisticMutation(
            cache,
            write,
            query_keys=[key],
            update_cache=lambda old, value, k: apply_session_edit(old, "s1", {"duration_minutes": value}),
            invalidate_keys=[key],
        )

    first = asyncio.ensure_future(edit().execute(90))
    await asyncio.sleep(0)
    second = asyncio.ensure_future(edit().execute(120))
    await asyncio.sleep(0)
    assert cache.get_query_data(key)["duration_minutes"] == 120

    await second
    # The first response lands after the second one
    first_release.set()
    await first
    assert cache.get_query_data(key)["duration_minutes"] == 120
    assert cache.is_stale(key)


@pytest.mark.asyncio
async def test_late_failure_does_not_roll_back_a_newer_mutation():
    cache = QueryCache()
    key = query_keys.sessions.detail("s1")
    cache._write(key, {"id": "s1", "duration_minutes": 60})
    first_release = asyncio.Event()

    async def write(minutes):
        if minutes == 90:
            await first_release.wait()
            raise TransportError()
        return minutes

    def edit():
        return OptimisticMutation(
            cache,
            write,
            query_keys=[key],
            update_cache=lambda old, value, k: apply_session_edit(old, "s1", {"duration_minutes": value}),
            invalidate_keys=[key],
        )

    first = asyncio.ensure_future(edit().execute(90))
    await asyncio.sleep(0)
    await edit().execute(120)
    first_release.set()
    with pytest.raises(MutationError):
        await first
    assert cache.get_query_data(key)["duration_minutes"] == 120


@pytest.mark.asyncio
@pytest.mark.parametrize("fail_order, after_first_failure", [((90, 120), 120), ((120, 90), 90)])
async def test_overlapping_failures_unwind_to_the_original_value(fail_order, after_first_failure):
    cache = QueryCache()
    key = query_keys.sessions.detail("s1")
    cache._write(key, {"id": "s1", "duration_minutes": 60})
    releases = {90: asyncio.Event(), 120: asyncio.Event()}

    async def write(minutes):
        await releases[minutes].wait()
        raise TransportError()

    calls = {}
    for minutes in (90, 120):
        calls[minutes] = asyncio.ensure_future(OptimisticMutation(
            cache,
            write,
            query_keys=[key],
            update_cache=lambda old, value, k: apply_session_edit(old, "s1", {"duration_minutes": value}),
            invalidate_keys=[key],
        ).execute(minutes))
        await asyncio.sleep(0)
    assert cache.get_query_data(key)["duration_minutes"] == 120

    first, second = fail_order
    releases[first].set()
    with pytest.raises(MutationError):
        await calls[first]
    assert cache.get_query_data(key)["duration_minutes"] == after_first_failure

    releases[second].set()
    with pytest.raises(MutationError):
        await calls[second]
    assert cache.get_query_data(key) == {"id": "s1", "duration_minutes": 60}
    assert cache.is_stale(key)


@pytest.mark.asyncio
async def test_failing_cache_update_restores_the_cache_and_sends_nothing():
    cache = QueryCache()
    cache._write(query_keys.squads.list(), copy.deepcopy(SQUADS))
    cache._write(query_keys.squads.detail("q1"), {"id": "q1", "name": "A"})
    sent = []

    async def write(squad_id):
        sent.append(squad_id)

    def update(old, squad_id, key):
        if key == query_keys.squads.detail(squad_id):
            raise KeyError("members")
        return remove_squad(old, squad_id)

    mutation = OptimisticMutation(
        cache,
        write,
        query_keys=[query_keys.squads.list(), query_keys.squads.detail("q9"), query_keys.squads.detail("q1")],
        update_cache=update,
        invalidate_keys=[query_keys.squads.all],
    )
    with pytest.raises(MutationError) as raised:
        await mutation.execute("q1")

    assert raised.value.message == "Connection error. Try again."
    assert sent == []
    assert cache.get_query_data(query_keys.squads.list()) == SQUADS
    assert cache.get_query_data(query_keys.squads.detail("q1")) == {"id": "q1", "name": "A"}
    assert query_keys.squads.detail("q9") not in cache.keys()
    assert cache.is_stale(query_keys.squads.list())
    assert cache.is_stale(query_keys.squads.detail("q1"))


# Client mutations over the services

@pytest.fixture
def world():
    rows = FakeRows()
    seed_profile(rows, ALICE)
    seed_profile(rows, BOB)
    squads = [seed_squad(rows, ALICE, members=[BOB], name=n, invite_code=c) for n, c in
              (("One", "AAA222"), ("Two", "BBB333"), ("Three", "CCC444"))]
    cache = QueryCache()
    squad_service = SquadService(rows)
    session_service = SessionService(rows)
    queries = ClientQueries(cache, squad_service, session_service, ProfileService(rows), BOB)
    mutations = ClientMutations(cache, squad_service, session_service, BOB)
    return rows, squads, cache, queries, mutations


@pytest.mark.asyncio
async def test_join_with_unknown_code_leaves_cache_untouched(world):
    rows, squads, cache, queries, mutations = world
    before = copy.deepcopy(await queries.squads())

    with pytest.raises(MutationError) as raised:
        await mutations.join_squad("ZZZ999")

    assert raised.value.message == "Invalid invite code"
    assert isinstance(raised.value.__cause__, InvalidReference)
    assert cache.get_query_data(query_keys.squads.list()) == before


@pytest.mark.asyncio
async def test_leave_squad_rolls_back_when_the_delete_fails(world):
    rows, squads, cache, queries, mutations = world
    before = copy.deepcopy(await queries.squads())
    assert len(before) == 3
    rows.fail("squad_members", "delete", transport=True)

    with pytest.raises(MutationError):
        await mutations.leave_squad(squads[1]["id"])

    assert cache.get_query_data(query_keys.squads.list()) == before


@pytest.mark.asyncio
async def test_rsvp_converges_to_a_fresh_read(world):
    rows, squads, cache, queries, mutations = world
    squad = squads[0]
    session = seed_session(rows, squad, ALICE, datetime(2099, 1, 1, 20, tzinfo=timezone.utc))
    seed_rsvp(rows, session, ALICE, "present")
    await queries.session(session["id"])
    await queries.squad_sessions(squad["id"])

    await mutations.respond(session["id"], squad["id"], "maybe")

    speculative = cache.get_query_data(query_keys.sessions.detail(session["id"]))
    assert speculative["my_rsvp"] == "maybe"
    assert speculative["rsvp_counts"] == {"present": 1, "absent": 0, "maybe": 1}
    assert cache.is_stale(query_keys.sessions.detail(session["id"]))

    refetched = await queries.session(session["id"])
    fresh = to_json(SessionService(rows).get_session(session["id"], BOB.id))
    assert refetched == fresh
    listed = await queries.squad_sessions(squad["id"])
    assert listed[0]["rsvp_counts"] == fresh["rsvp_counts"]


@pytest.mark.asyncio
async def test_create_session_shows_a_temporary_row_until_refetch(world):
    rows, squads, cache, queries, mutations = world
    squad_id = squads[0]["id"]
    await queries.squad_sessions(squad_id)
    release = asyncio.Event()
    original = mutations.sessions.create_session

    def slow_create(data, user):
        asyncio.run_coroutine_threadsafe(release.wait(), loop).result()
        return original(data, user)

    loop = asyncio.get_running_loop()
    mutations.sessions.create_session = slow_create
    pending = asyncio.ensure_future(mutations.create_session(
        SessionCreate(squad_id=squad_id, title="Scrims", scheduled_at=datetime(2099, 2, 1, tzinfo=timezone.utc))
    ))
    await asyncio.sleep(0)

    temporary = cache.get_query_data(query_keys.sessions.list(squad_id))
    assert len(temporary) == 1
    assert is_optimistic_id(temporary[0]["id"])
    assert temporary[0]["my_rsvp"] == "present"

    release.set()
    created = await pending
    refetched = await queries.squad_sessions(squad_id)
    assert [s["id"] for s in refetched] == [created.id]


@pytest.mark.asyncio
async def test_update_session_edits_detail_and_list(world):
    rows, squads, cache, queries, mutations = world
    squad = squads[0]
    session = seed_session(rows, squad, BOB, datetime(2099, 1, 1, 20, tzinfo=timezone.utc), duration_minutes=60)
    await queries.session(session["id"])
    await queries.squad_sessions(squad["id"])

    await mutations.update_session(session["id"], squad["id"], SessionUpdate(duration_minutes=90))

    assert cache.get_query_data(query_keys.sessions.detail(session["id"]))["duration_minutes"] == 90
    assert (await queries.squad_sessions(squad["id"]))[0]["duration_minutes"] == 90
