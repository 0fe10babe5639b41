"""
Shared fixtures: in-memory database, zero-delay settings and a fake Graph API.
"""
import json
import os
from urllib.parse import parse_qsl

# Keep the app's import-time engine off the developer database
os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from killscale.config import Settings, get_settings
from killscale.database import Base, get_db
from killscale.dependencies import get_graph_factory
from killscale.main import app
from killscale.models import MetaConnection
from killscale.services.meta_graph import MetaGraphClient

USER_ID = "user-1"
AD_ACCOUNT_ID = "act_123"


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url="sqlite://",
        meta_rate_limit_backoff_ms=0,
        bulk_status_batch_delay_ms=0,
        bulk_delete_delay_ms=0,
        bulk_budget_batch_delay_ms=0,
        duplicate_child_delay_ms=0,
        status_cascade_delay_ms=0,
        launch_duplicate_delay_ms=0,
        anthropic_api_key=None,
    )
    values.update(overrides)
    return Settings(**values)


class FakeGraphApi:
    """
    Routes Graph requests by (method, path) to canned payloads.

    Paths are given without the API version, e.g. ("POST", "act_123/campaigns").
    A route may be a dict (200 response), a (status, dict) tuple, or a
    callable taking the httpx.Request and returning either of those.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method: str, path: str, response) -> None:
        self.routes[(method, path)] = response

    def fail(self, method: str, path: str, message: str, code: int = 100, subcode=None, status: int = 400, user_msg=None):
        error = {"message": message, "code": code}
        if subcode is not None:
            error["error_subcode"] = subcode
        if user_msg is not None:
            error["error_user_msg"] = user_msg
        self.on(method, path, (status, {"error": error}))

    @staticmethod
    def path_of(request: httpx.Request) -> str:
        # /v18.0/act_123/campaigns -> act_123/campaigns
        return request.url.path.split("/", 2)[2]

    @staticmethod
    def form(request: httpx.Request) -> dict:
        return dict(parse_qsl(request.content.decode()))

    def posted(self, path: str) -> list:
        return [self.form(r) for r in self.requests if r.method == "POST" and self.path_of(r) == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, self.path_of(request)))
        if callable(route):
            route = route(request)
        if route is None:
            return httpx.Response(400, json={"error": {"message": "Unsupported request", "code": 100}})
        if isinstance(route, tuple):
            status, payload = route
            return httpx.Response(status, json=payload)
        return httpx.Response(200, json=route)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, settings: Settings, sleep=None) -> MetaGraphClient:
        kwargs = {"sleep": sleep} if sleep is not None else {}
        return MetaGraphClient("token", settings=settings, transport=self.transport(), **kwargs)


@pytest.fixture
def test_settings():
    return make_settings()


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_graph():
    return FakeGraphApi()


@pytest.fixture
def meta_connection(db_session):
    connection = MetaConnection(user_id=USER_ID, access_token="token", meta_user_name="Test User")
    db_session.add(connection)
    db_session.commit()
    return connection


@pytest.fixture
def client(db_session, test_settings, fake_graph):
    def override_get_db():
        yield db_session

    def override_graph_factory():
        return lambda access_token: MetaGraphClient(
            access_token, settings=test_settings, transport=fake_graph.transport()
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_graph_factory] = override_graph_factory
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def json_body(request: httpx.Request) -> dict:
    return json.loads(request.content.decode())
