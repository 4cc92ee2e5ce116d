"""Shared test fixtures: a scripted RunwayML double and a wired-up service."""

import json
from typing import Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from reels.config import Settings
from reels.main import create_app
from reels.runway import RunwayClient
from reels.service import ReelService
from reels.signatures import compute_signature
from reels.store import InMemoryTaskStore

WEBHOOK_SECRET = "whsec_test"
RUNWAY_BASE = "https://runway.test/v1"


class FakeRunway:
    """
    httpx.MockTransport handler standing in for RunwayML.

    Every request is recorded. GET /tasks/{id} answers from `tasks`, or from
    the scripted `status_queue` when one is set (the last entry repeats).
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.tasks: dict[str, dict] = {}
        self.status_queue: list[dict] = []
        self.submit_status = 200
        self.submit_body: Optional[dict] = None
        self.poll_status = 200
        self._counter = 0
        self.transport = httpx.MockTransport(self.handle)

    @property
    def submissions(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    @property
    def polls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def set_task(self, task_id: str, **fields):
        self.tasks[task_id] = {"id": task_id, **fields}

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/image_to_video"):
            if self.submit_status != 200:
                return httpx.Response(self.submit_status, json={"error": "rejected"})
            if self.submit_body is not None:
                return httpx.Response(200, json=self.submit_body)
            self._counter += 1
            task_id = f"task-{self._counter}"
            self.tasks[task_id] = {"id": task_id, "status": "PENDING"}
            return httpx.Response(200, json={"id": task_id})

        if request.method == "GET" and "/tasks/" in path:
            if self.poll_status != 200:
                return httpx.Response(self.poll_status, json={"error": "unavailable"})
            task_id = path.rsplit("/", 1)[-1]
            if self.status_queue:
                body = self.status_queue.pop(0) if len(self.status_queue) > 1 else self.status_queue[0]
                return httpx.Response(200, json={"id": task_id, **body})
            if task_id not in self.tasks:
                return httpx.Response(404, json={"error": "Task not found"})
            return httpx.Response(200, json=self.tasks[task_id])

        return httpx.Response(404, json={"error": "no route"})


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return compute_signature(body, secret)


def webhook_body(**payload) -> bytes:
    payload.setdefault("created_at", "2026-10-18T12:00:00Z")
    payload.setdefault("updated_at", "2026-10-18T12:00:05Z")
    return json.dumps(payload).encode("utf-8")


@pytest.fixture()
def runway() -> FakeRunway:
    return FakeRunway()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        runway_api_key="test-key",
        runway_api_base=RUNWAY_BASE,
        webhook_secret=WEBHOOK_SECRET,
        environment="test",
    )


@pytest.fixture()
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture()
def service(settings, store, runway) -> ReelService:
    return ReelService.from_settings(settings, store, max_retries=0, transport=runway.transport)


@pytest.fixture()
def app(settings, service):
    return create_app(settings=settings, service=service)


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def unconfigured_provider() -> RunwayClient:
    return RunwayClient(api_key="", base_url=RUNWAY_BASE, max_retries=0)
