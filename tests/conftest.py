"""
Shared fakes: an in-memory Supabase stand-in, an httpx MockTransport runner
and a requests-like session for Runware.
"""

import asyncio
import json

import httpx
import pytest

import import_settings


# ---------- Environment ----------
@pytest.fixture(autouse=True)
def no_real_keys(monkeypatch):
    """Tests never see real API keys or a developer's .env file."""
    monkeypatch.setattr(import_settings, "load_dotenv", lambda *a, **k: False)
    for name in ("PERENUAL_API_KEY", "PERPLEXITY_API_KEY", "RUNWARE_API_KEY"):
        monkeypatch.delenv(name, raising=False)


# ---------- Supabase ----------
class FakeResult:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Just enough of the PostgREST builder: select/insert/update + eq/limit + execute."""

    def __init__(self, db, name):
        self.db = db
        self.name = name
        self.op = "select"
        self.payload = None
        self.filters = []
        self.n = None

    def select(self, cols="*"):
        self.op = "select"
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, patch):
        self.op, self.payload = "update", patch
        return self

    def eq(self, col, value):
        self.filters.append((col, value))
        return self

    def limit(self, n):
        self.n = n
        return self

    def execute(self):
        rows = self.db.tables.setdefault(self.name, [])
        if self.op == "insert":
            if self.payload.get("scientific_name") in self.db.fail_on:
                raise RuntimeError("insert rejected")
            rows.append(dict(self.payload))
            return FakeResult([dict(self.payload)])
        matched = [r for r in rows if all(r.get(c) == v for c, v in self.filters)]
        if self.op == "update":
            for r in matched:
                r.update(self.payload)
            return FakeResult(matched)
        return FakeResult(matched[: self.n] if self.n else matched)


class FakeSupabase:
    def __init__(self, rows=None, fail_on=()):
        self.tables = {"plants": [dict(r) for r in rows or []]}
        self.fail_on = set(fail_on)

    def table(self, name):
        return FakeQuery(self, name)

    @property
    def plants(self):
        return self.tables["plants"]


@pytest.fixture
def fake_sb():
    return FakeSupabase()


# ---------- httpx ----------
class Recorder:
    """Wraps a request handler and keeps every request it saw."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.handler(request)

    def paths(self):
        return [r.url.path for r in self.requests]


def run_http(handler, fn):
    """Run fn(client) on an AsyncClient whose transport is the handler."""
    rec = handler if isinstance(handler, Recorder) else Recorder(handler)

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(rec)) as client:
            return await fn(client)

    return asyncio.run(go())


def perplexity_reply(content):
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def request_json(request):
    return json.loads(request.content.decode("utf-8"))


# ---------- requests ----------
class FakeResponse:
    def __init__(self, status_code=200, payload=None, content=b""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 400
        self._payload = payload
        self.content = content
        self.text = json.dumps(payload) if payload is not None else ""

    def json(self):
        return self._payload


class FakeRunwareSession:
    """Echoes the posted taskUUID back unless told otherwise; serves image bytes on GET."""

    def __init__(self, image=b"\x89PNG" + b"0" * 20000, echo_task=True, status=200):
        self.image = image
        self.echo_task = echo_task
        self.status = status
        self.posts = []
        self.gets = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers})
        if self.status != 200:
            return FakeResponse(self.status, {"errors": [{"message": "bad"}]})
        task = json[0]
        uuid = task["taskUUID"] if self.echo_task else "someone-else"
        return FakeResponse(200, {"data": [{"taskType": "imageInference", "taskUUID": uuid,
                                            "imageURL": "https://im.runware.ai/image/abc.png"}]})

    def get(self, url, timeout=None):
        self.gets.append(url)
        return FakeResponse(200, content=self.image)
