"""Tests for the relay's FastAPI application."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from fsrelay.config import Binding, Config, PollConfig, ServerConfig, WatchConfig
from fsrelay.server import create_app, get_state
from fsrelay.server.poll import EventPoller, PolledEvent
from fsrelay.watching import ChangeEvent, WatchError


def make_config(root: Path, binding: Binding, poll_timeout: float = 5.0) -> Config:
    return Config(
        server=ServerConfig(binding=binding),
        watch=WatchConfig(root=str(root)),
        poll=PollConfig(timeout=poll_timeout),
    )


def receive_until(websocket, expected: set[bytes], limit: int = 50) -> list[bytes]:
    """Receive frames until one in ``expected`` arrives; return all of them."""
    frames = []
    for _ in range(limit):
        frame = websocket.receive_bytes()
        frames.append(frame)
        if frame in expected:
            return frames
    raise AssertionError(f"none of {expected!r} in {frames!r}")


class TestRouteSets:
    """Each binding exposes only its own routes."""

    def test_websocket_binding_routes(self, root: Path) -> None:
        app = create_app(make_config(root, Binding.WEBSOCKET))
        paths = {route.path for route in app.routes}

        assert "/" in paths
        assert "/status" in paths
        assert "/write_file" not in paths
        assert "/poll" not in paths

    def test_http_binding_routes(self, root: Path) -> None:
        app = create_app(make_config(root, Binding.HTTP))
        paths = {route.path for route in app.routes}

        assert {"/write_file", "/poll", "/status"} <= paths
        assert "/" not in paths

    def test_state_resolved_root(self, root: Path) -> None:
        app = create_app(make_config(root / "sub" / "..", Binding.WEBSOCKET))
        state = get_state(app)

        assert state.root == root
        assert state.resolver.base_dir == root


class TestStatus:
    """Tests for GET /status."""

    def test_status(self, root: Path) -> None:
        app = create_app(make_config(root, Binding.WEBSOCKET))
        with TestClient(app) as client:
            response = client.get("/status")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["binding"] == "websocket"
        assert body["root"] == str(root)
        assert body["connections"] == 0


class TestWebSocketBinding:
    """End-to-end tests over a WebSocket connection."""

    @pytest.fixture
    def client(self, root: Path):
        app = create_app(make_config(root, Binding.WEBSOCKET))
        with TestClient(app) as client:
            yield client

    def test_write_then_observe(self, client: TestClient, root: Path) -> None:
        path = root / "test.luau"
        path_bytes = str(path).encode()

        with client.websocket_connect("/") as websocket:
            websocket.send_bytes(b'test.luau\nprint("test")')
            frames = receive_until(
                websocket,
                {
                    b"c" + path_bytes + b'\nprint("test")',
                    b"u" + path_bytes + b'\nprint("test")',
                },
            )
            assert frames[0].startswith(b"c" + path_bytes + b"\n")
            assert path.read_bytes() == b'print("test")'

            path.write_bytes(b'print("test2")')
            receive_until(websocket, {b"u" + path_bytes + b'\nprint("test2")'})

            path.unlink()
            receive_until(websocket, {b"d" + path_bytes})

    def test_malformed_frame_reported(self, client: TestClient, root: Path) -> None:
        with client.websocket_connect("/") as websocket:
            websocket.send_bytes(b"no separator")
            assert websocket.receive_bytes() == b"eNoNewlineToSeparatePath"

            # Connection stays usable
            websocket.send_bytes(b"after.txt\nok")
            after = str(root / "after.txt").encode()
            receive_until(websocket, {b"c" + after + b"\nok", b"u" + after + b"\nok"})

    def test_traversal_reported(self, client: TestClient, root: Path, tmp_path: Path) -> None:
        with client.websocket_connect("/") as websocket:
            websocket.send_bytes(b"../escape.txt\nowned")
            assert websocket.receive_bytes().startswith(b"eInvalidPath")

        assert not (tmp_path / "escape.txt").exists()

    def test_text_message_accepted(self, client: TestClient, root: Path) -> None:
        path = root / "from_text.txt"
        with client.websocket_connect("/") as websocket:
            websocket.send_text("from_text.txt\nhello")
            receive_until(
                websocket,
                {
                    b"c" + str(path).encode() + b"\nhello",
                    b"u" + str(path).encode() + b"\nhello",
                },
            )

        assert path.read_bytes() == b"hello"

    def test_connection_counted(self, client: TestClient) -> None:
        with client.websocket_connect("/") as websocket:
            # A round trip guarantees the endpoint has registered us
            websocket.send_bytes(b"x")
            websocket.receive_bytes()
            assert client.get("/status").json()["connections"] == 1

    def test_each_connection_gets_its_own_watch(self, client: TestClient, root: Path) -> None:
        path = root / "second.txt"
        with client.websocket_connect("/") as websocket:
            websocket.send_bytes(b"x")
            websocket.receive_bytes()

        with client.websocket_connect("/") as websocket:
            websocket.send_bytes(b"second.txt\n2")
            receive_until(
                websocket,
                {b"c" + str(path).encode() + b"\n2", b"u" + str(path).encode() + b"\n2"},
            )


class TestHttpBinding:
    """Tests for POST /write_file and GET /poll."""

    @pytest.fixture
    def client(self, root: Path):
        app = create_app(make_config(root, Binding.HTTP, poll_timeout=0.5))
        with TestClient(app) as client:
            yield client

    def poll_until(self, client: TestClient, predicate, attempts: int = 20) -> list[dict]:
        seen: list[dict] = []
        for _ in range(attempts):
            response = client.get("/poll")
            assert response.status_code == 200
            seen.extend(response.json())
            if any(predicate(record) for record in seen):
                return seen
        raise AssertionError(f"no matching record in {seen!r}")

    def test_write_file(self, client: TestClient, root: Path) -> None:
        response = client.post("/write_file", content=b"a/b.txt\nX")

        assert response.status_code == 200
        assert response.text == ""
        assert (root / "a" / "b.txt").read_bytes() == b"X"

    def test_write_file_without_newline(self, client: TestClient) -> None:
        response = client.post("/write_file", content=b"nothing to split")

        assert response.status_code == 500
        assert response.text == "NoNewlineToSeparatePath"

    def test_write_file_traversal(self, client: TestClient, tmp_path: Path) -> None:
        response = client.post("/write_file", content=b"../escape.txt\nx")

        assert response.status_code == 500
        assert response.text.startswith("InvalidPath")
        assert not (tmp_path / "escape.txt").exists()

    def test_poll_reports_create(self, client: TestClient, root: Path) -> None:
        path = root / "polled.txt"
        client.post("/write_file", content=b"polled.txt\nhello")

        records = self.poll_until(
            client, lambda r: r.get("path") == str(path) and r.get("content") == "hello"
        )

        first = next(r for r in records if r.get("path") == str(path))
        assert first["kind"] == "create"
        assert first["encoding"] == "utf-8"
        assert "message" not in first

    def test_poll_reports_delete(self, client: TestClient, root: Path) -> None:
        path = root / "doomed.txt"
        path.write_bytes(b"x")
        self.poll_until(client, lambda r: r.get("path") == str(path))

        path.unlink()
        records = self.poll_until(client, lambda r: r["kind"] == "delete")

        delete = next(r for r in records if r["kind"] == "delete")
        assert delete == {"kind": "delete", "path": str(path)}

    def test_poll_times_out_empty(self, client: TestClient) -> None:
        started = time.monotonic()
        response = client.get("/poll")

        assert response.status_code == 200
        assert response.json() == []
        assert time.monotonic() - started >= 0.4


class TestPolledEvent:
    """Tests for poll record conversion."""

    def test_utf8_content(self) -> None:
        record = PolledEvent.from_item(ChangeEvent.update("/r/a", b"hi"))
        assert record.kind == "update"
        assert record.content == "hi"
        assert record.encoding == "utf-8"

    def test_binary_content_base64(self) -> None:
        record = PolledEvent.from_item(ChangeEvent.create("/r/a.bin", b"\xff\x00"))
        assert record.encoding == "base64"
        assert record.content == "/wA="

    def test_delete_has_no_content(self) -> None:
        record = PolledEvent.from_item(ChangeEvent.delete("/r/a"))
        assert record.content is None
        assert record.encoding is None

    def test_watch_error(self) -> None:
        record = PolledEvent.from_item(WatchError("root removed"))
        assert record.kind == "error"
        assert record.message == "root removed"
        assert record.path is None


class QueueSession:
    """Stands in for a WatchSession: just the consumer side of its queue."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()

    async def get(self):
        return await self.queue.get()

    def get_nowait(self):
        return self.queue.get_nowait()


class Client:
    """Disconnect flag a test can flip while a poll is waiting."""

    def __init__(self, gone: bool = False) -> None:
        self.gone = gone

    async def is_disconnected(self) -> bool:
        return self.gone


class TestEventPoller:
    """Tests for draining the queue on behalf of pollers."""

    @pytest.mark.asyncio
    async def test_returns_everything_queued(self) -> None:
        session = QueueSession()
        poller = EventPoller(session, timeout=5.0)
        first, second = ChangeEvent.create("/r/a", b"1"), ChangeEvent.delete("/r/b")
        session.queue.put_nowait(first)
        session.queue.put_nowait(second)

        assert await poller.poll(Client().is_disconnected) == [first, second]

    @pytest.mark.asyncio
    async def test_timeout_returns_empty(self) -> None:
        poller = EventPoller(QueueSession(), timeout=0.2)
        assert await poller.poll() == []

    @pytest.mark.asyncio
    async def test_abandoned_poll_takes_nothing(self) -> None:
        session = QueueSession()
        poller = EventPoller(session, timeout=5.0)
        client = Client()

        waiting = asyncio.create_task(poller.poll(client.is_disconnected))
        await asyncio.sleep(0.05)
        client.gone = True
        assert await asyncio.wait_for(waiting, timeout=2.0) == []

        created = ChangeEvent.create("/r/lost.txt", b"hello")
        session.queue.put_nowait(created)

        assert await poller.poll(Client().is_disconnected) == [created]
        assert session.queue.empty()

    @pytest.mark.asyncio
    async def test_events_taken_for_departed_client_are_held(self) -> None:
        session = QueueSession()
        poller = EventPoller(session, timeout=5.0)
        first = ChangeEvent.create("/r/a", b"1")
        session.queue.put_nowait(first)

        assert await poller.poll(Client(gone=True).is_disconnected) == []
        assert poller.held == 1

        second = ChangeEvent.update("/r/a", b"2")
        session.queue.put_nowait(second)

        assert await poller.poll(Client().is_disconnected) == [first, second]
        assert poller.held == 0

    @pytest.mark.asyncio
    async def test_next_poll_not_stuck_behind_abandoned_one(self) -> None:
        session = QueueSession()
        poller = EventPoller(session, timeout=30.0)
        departed = Client()

        abandoned = asyncio.create_task(poller.poll(departed.is_disconnected))
        await asyncio.sleep(0.05)
        live = asyncio.create_task(poller.poll(Client().is_disconnected))
        departed.gone = True

        created = ChangeEvent.create("/r/a", b"x")
        session.queue.put_nowait(created)

        assert await asyncio.wait_for(live, timeout=2.0) == [created]
        assert await abandoned == []

    @pytest.mark.asyncio
    async def test_cancelled_poll_loses_nothing(self) -> None:
        session = QueueSession()
        poller = EventPoller(session, timeout=30.0)

        waiting = asyncio.create_task(poller.poll())
        await asyncio.sleep(0.05)
        waiting.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiting

        created = ChangeEvent.create("/r/a", b"x")
        session.queue.put_nowait(created)
        assert await poller.poll() == [created]
