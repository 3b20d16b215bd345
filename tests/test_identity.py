import asyncio
import gc

import pytest
from starlette.requests import Request

from squad_planner.core.dependencies import resolve_identity
from squad_planner.core.errors import TransportError
from squad_planner.core.identity import IdentityCache, RequestKey, request_key
from tests.conftest import ALICE
from tests.fakes import FakeAuthService


class _App:
    def __init__(self):
        self.state = type("State", (), {})()


def _request(app, token="alice-token"):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(b"authorization", f"Bearer {token}".encode())],
        "app": app,
    }
    return Request(scope)


@pytest.mark.asyncio
async def test_three_loaders_share_one_identity_check():
    app = _App()
    auth = FakeAuthService({"alice-token": ALICE}, delay=0.05)
    request = _request(app)

    results = await asyncio.gather(*(resolve_identity(request, auth) for _ in range(3)))

    assert auth.calls == 1
    assert results == [ALICE, ALICE, ALICE]


@pytest.mark.asyncio
async def test_loaders_observe_the_same_failure():
    app = _App()
    auth = FakeAuthService(error=TransportError(), delay=0.01)
    request = _request(app)

    results = await asyncio.gather(
        *(resolve_identity(request, auth) for _ in range(3)),
        return_exceptions=True,
    )

    assert auth.calls == 1
    assert all(isinstance(r, TransportError) for r in results)
    assert results[0] is results[1] is results[2]


@pytest.mark.asyncio
async def test_separate_requests_check_separately():
    app = _App()
    auth = FakeAuthService({"alice-token": ALICE})

    await resolve_identity(_request(app), auth)
    await resolve_identity(_request(app), auth)

    assert auth.calls == 2


@pytest.mark.asyncio
async def test_unknown_token_is_no_identity():
    app = _App()
    auth = FakeAuthService({})
    assert await resolve_identity(_request(app, "nope"), auth) is None


@pytest.mark.asyncio
async def test_entries_do_not_outlive_their_request():
    cache = IdentityCache()

    async def check():
        return ALICE

    key = RequestKey()
    await cache.resolve(key, check)
    assert len(cache) == 1

    del key
    gc.collect()
    assert len(cache) == 0


def test_request_key_is_stable_per_request():
    request = _request(_App())
    assert request_key(request) is request_key(request)
    assert request_key(request) is not request_key(_request(_App()))
