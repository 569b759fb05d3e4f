"""
Tests for the HTTP gateway, run against the Flask app through its test client.
"""
import asyncio
from unittest.mock import MagicMock

import pytest
import requests

from boardsync.client import HttpGateway
from boardsync.config import Config
from boardsync.controller import BoardController, Outcome
from boardsync.errors import GatewayError
from boardsync.gateway import TaskRecord
from boardsync.positions import RepositionEntry
from boardsync.schema import TaskDraft
from boardsync.server import create_app
from boardsync.store import KanbanStore

API_KEY = "s3cret"


class FlaskResponse:
    """The slice of requests.Response that HttpGateway reads."""

    def __init__(self, resp):
        self.status_code = resp.status_code
        self.ok = resp.status_code < 400
        self.content = resp.data
        self.text = resp.get_data(as_text=True)
        self._resp = resp

    def json(self):
        data = self._resp.get_json(silent=True)
        if data is None:
            raise ValueError("no JSON body")
        return data


class FlaskSession:
    """requests.Session stand-in routing calls into a Flask test client."""

    def __init__(self, app):
        self.client = app.test_client()
        self.headers = {}
        self.requests = []

    def request(self, method, url, json=None, timeout=None):
        path = url.split("://", 1)[-1]
        path = path[path.index("/"):]
        self.requests.append((method, path))
        headers = {k: v for k, v in self.headers.items() if k != "Content-Type"}
        resp = self.client.open(path, method=method, json=json, headers=headers)
        return FlaskResponse(resp)


@pytest.fixture
def store(db_path):
    return KanbanStore(db_path, seed_demo=True)


@pytest.fixture
def session(db_path, store):
    app = create_app(Config(db_path=db_path, api_secret=API_KEY).validate(), store=store)
    return FlaskSession(app)


@pytest.fixture
def gateway(session):
    return HttpGateway("http://boards.local:3000/", api_key=API_KEY, session=session)


def test_sets_auth_header(gateway, session):
    assert session.headers["X-API-Key"] == API_KEY
    assert gateway.base_url == "http://boards.local:3000"


def test_fetch_or_seed(gateway):
    board = asyncio.run(gateway.fetch_or_seed("b1"))
    assert board.task_ids("todo") == ("t1", "t2")
    board.check_invariants()


def test_crud_round_trip(gateway, store):
    async def calls():
        await gateway.fetch_or_seed("b1")
        created = await gateway.create_task(
            "b1", TaskRecord(id="n1", column_id="done", title="X", position=100)
        )
        updated = await gateway.update_task("n1", {"assignee": "YY"})
        await gateway.batch_reposition([RepositionEntry("n1", "todo", 0)], "b1")
        await gateway.delete_task("t4")
        return created, updated

    created, updated = asyncio.run(calls())
    assert created.id == "n1"
    assert updated.assignee == "YY"
    assert store.positions("b1")["n1"] == ("todo", 0)
    assert store.get_task("t4") is None


def test_error_status_raises_gateway_error(gateway):
    with pytest.raises(GatewayError) as exc:
        asyncio.run(gateway.delete_task("ghost"))
    assert "404" in str(exc.value)


def test_bad_key_raises_gateway_error(session):
    gateway = HttpGateway("http://boards.local", api_key="wrong", session=session)
    with pytest.raises(GatewayError):
        asyncio.run(gateway.delete_task("t1"))


def test_transport_error_raises_gateway_error():
    session = MagicMock()
    session.headers = {}
    session.request.side_effect = requests.ConnectionError("refused")
    gateway = HttpGateway("http://boards.local", session=session, timeout=1.5)
    with pytest.raises(GatewayError):
        asyncio.run(gateway.fetch_or_seed("b1"))
    assert session.request.call_args.kwargs["timeout"] == 1.5


def test_controller_over_http(gateway, store):
    """Optimistic commands settle against the server and match stored state"""
    controller = BoardController(gateway, "b1", id_factory=lambda: "n1")

    async def session():
        await controller.load()
        assert await controller.drop("t1", "t3") == Outcome.SETTLED
        assert await controller.add_task("done", TaskDraft(title="Ship")) == Outcome.SETTLED
        assert await controller.move_task("ghost", "done") == Outcome.IGNORED

    asyncio.run(session())
    stored = store.load_board("b1")
    assert stored.column_task_ids == controller.board.column_task_ids
    assert stored.task_ids("doing") == ("t1", "t3")
    assert stored.task_ids("done") == ("t4", "n1")


def test_controller_over_http_rolls_back_on_auth_failure(session, store):
    gateway = HttpGateway("http://boards.local", api_key="wrong", session=session)
    controller = BoardController(gateway, "b1")

    async def run():
        await controller.load()
        return await controller.move_task("t1", "done")

    assert asyncio.run(run()) == Outcome.ROLLED_BACK
    assert controller.board.task_ids("todo") == ("t1", "t2")
