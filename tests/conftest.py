"""Shared fixtures for the check-in console tests."""
import os

os.environ.setdefault("AUTH_JWKS_URL", "http://idp.test/.well-known/jwks.json")
os.environ.setdefault("GYM_API_BASE_URL", "https://api.gym.test")

import httpx
import pytest

from checkin_console.core.config import get_settings
from checkin_console.core.errors import CaptureError, EncodingError
from checkin_console.services.gym_api import GymApiClient
from checkin_console.services.orchestrator import CheckInOrchestrator


class FakeStream:
    def __init__(self, on_decode):
        self.on_decode = on_decode
        self.stopped = False
        self.stop_calls = 0

    def emit(self, code):
        if not self.stopped:
            self.on_decode(code)

    def stop(self):
        self.stop_calls += 1
        self.stopped = True


class FakeCamera:
    def __init__(self, fail=False):
        self.fail = fail
        self.streams = []
        self.open_args = []

    async def open(self, *, facing, fps, region, on_decode):
        self.open_args.append({"facing": facing, "fps": fps, "region": region})
        if self.fail:
            raise CaptureError("Failed to start camera. Please check permissions.")
        stream = FakeStream(on_decode)
        self.streams.append(stream)
        return stream

    @property
    def last(self):
        return self.streams[-1]

    @property
    def open_streams(self):
        return [s for s in self.streams if not s.stopped]


class FakeEncoder:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def __call__(self, text, size):
        self.calls.append((text, size))
        if self.fail:
            raise EncodingError("encoder unavailable")
        return f"data:image/png;base64,{text}"


class GymApiStub:
    """Routes requests to per-endpoint handlers and records what was sent."""

    def __init__(self):
        self.requests = []
        self.check_in = lambda request: httpx.Response(200, json={})
        self.complete = lambda request: httpx.Response(200, json={})

    async def __call__(self, request):
        self.requests.append(request)
        if request.url.path.endswith("/complete"):
            handler = self.complete
        else:
            handler = self.check_in
        response = handler(request)
        if not isinstance(response, httpx.Response):
            response = await response
        return response

    def paths(self):
        return [r.url.path for r in self.requests]


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def stub():
    return GymApiStub()


@pytest.fixture
async def api(stub, settings):
    async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
        yield GymApiClient(client, settings)


@pytest.fixture
def camera():
    return FakeCamera()


@pytest.fixture
def encoder():
    return FakeEncoder()


@pytest.fixture
def identity():
    return {"sub": "auth0|staff-1"}


@pytest.fixture
def flow(api, camera, encoder, identity, settings):
    return CheckInOrchestrator(
        api, camera, identity=lambda: identity.get("sub"), encoder=encoder, settings=settings,
    )
