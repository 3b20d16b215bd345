import pytest
from fastapi.testclient import TestClient

from squad_planner.core.dependencies import get_auth_service, get_messenger
from squad_planner.core.identity import IdentityCache
from squad_planner.core.notifications import SystemMessenger
from squad_planner.database.supabase_client import get_rows
from squad_planner.main import app
from squad_planner.modules.auth.schemas import Identity
from tests.fakes import FakeAuthService, FakeRows

ALICE = Identity(id="user-alice", email="alice@example.com", username="alice")
BOB = Identity(id="user-bob", email="bob@example.com", username="bob")
CAROL = Identity(id="user-carol", email="carol@example.com", username="carol")

TOKENS = {"alice-token": ALICE, "bob-token": BOB, "carol-token": CAROL}


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def rows():
    return FakeRows()


@pytest.fixture
def messenger(rows):
    return SystemMessenger(rows, background=False)


@pytest.fixture
def auth():
    return FakeAuthService(dict(TOKENS))


@pytest.fixture
def client(rows, auth, messenger):
    app.dependency_overrides[get_rows] = lambda: rows
    app.dependency_overrides[get_auth_service] = lambda: auth
    app.dependency_overrides[get_messenger] = lambda: messenger
    app.state.identity_cache = IdentityCache()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
