from squad_planner.client import query_keys
from squad_planner.client.hydration import DehydratedQuery, PageHydrator, dehydrate
from squad_planner.client.query_cache import QueryCache


def test_seeds_every_query_including_empty_ones():
    cache = QueryCache()
    hydrator = PageHydrator(cache)

    seeded = hydrator.hydrate([
        dehydrate(query_keys.squads.list(), []),
        dehydrate(query_keys.profile.current(), None),
        {"key": ["sessions", "upcoming"], "data": [{"id": "s1"}]},
    ])

    assert seeded
    assert cache.has_query(query_keys.squads.list())
    assert cache.get_query_data(query_keys.squads.list()) == []
    assert cache.has_query(query_keys.profile.current())
    assert not cache.is_stale(query_keys.profile.current())
    assert cache.get_query_data(query_keys.sessions.upcoming()) == [{"id": "s1"}]


def test_seeding_happens_once_per_page_instance():
    cache = QueryCache()
    hydrator = PageHydrator(cache)
    hydrator.hydrate([DehydratedQuery(key=["squads", "list"], data=[{"id": "server"}])])

    # The client has fresher data by the time the page re-renders
    cache._write(query_keys.squads.list(), [{"id": "client"}])
    assert not hydrator.hydrate([DehydratedQuery(key=["squads", "list"], data=[{"id": "server"}])])
    assert cache.get_query_data(query_keys.squads.list()) == [{"id": "client"}]


def test_a_new_page_instance_seeds_again():
    cache = QueryCache()
    PageHydrator(cache).hydrate([dehydrate(query_keys.squads.list(), [1])])
    assert PageHydrator(cache).hydrate([dehydrate(query_keys.squads.list(), [2])])
    assert cache.get_query_data(query_keys.squads.list()) == [2]
