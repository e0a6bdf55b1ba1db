import asyncio
import base64
import time

import cv2
import numpy as np
import pytest

from checkin_console.core import qr
from checkin_console.core.camera import OpenCVCamera, OpenCVStream
from checkin_console.core.errors import CaptureError, EncodingError


class FakeCapture:
    def __init__(self, opened=True):
        self.opened = opened
        self.released = 0
        self.reads = 0

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        return True

    def read(self):
        self.reads += 1
        return True, np.zeros((480, 640, 3), dtype=np.uint8)

    def release(self):
        self.released += 1


class SlowCapture(FakeCapture):
    def read(self):
        time.sleep(0.05)
        return super().read()


class ScriptedDetector:
    def __init__(self, results):
        self.results = list(results)
        self.shapes = []

    def detectAndDecode(self, frame):
        self.shapes.append(frame.shape[:2])
        item = self.results.pop(0) if self.results else ""
        if isinstance(item, Exception):
            raise item
        return item, None, None


async def test_stream_emits_until_stopped_and_releases_capture():
    capture = FakeCapture()
    seen = []
    stream = OpenCVStream(capture, fps=200, region=250, on_decode=None)

    def on_decode(code):
        seen.append(code)
        stream.stop()

    stream._on_decode = on_decode
    stream._detector = ScriptedDetector([cv2.error("bad frame"), "", "XYZ123", "LATE"])
    stream.start()
    await asyncio.wait_for(stream._task, timeout=2)

    assert seen == ["XYZ123"]
    assert capture.released == 1
    assert stream.stopped
    assert stream._detector.shapes[0] == (250, 250)


async def test_stop_from_outside_cancels_loop():
    capture = FakeCapture()
    stream = OpenCVStream(capture, fps=200, region=100, on_decode=lambda code: None)
    stream._detector = ScriptedDetector([])
    stream.start()
    await asyncio.sleep(0.02)

    stream.stop()
    stream.stop()
    with pytest.raises(asyncio.CancelledError):
        await stream._task
    assert capture.released == 1


async def test_camera_that_will_not_open_raises_capture_error(monkeypatch):
    capture = FakeCapture(opened=False)
    monkeypatch.setattr(cv2, "VideoCapture", lambda index: capture)
    with pytest.raises(CaptureError) as info:
        await OpenCVCamera(index=3).open(facing="environment", fps=10, region=250, on_decode=lambda c: None)
    assert info.value.message == "Failed to start camera. Please check permissions."
    assert capture.released == 1


def test_encode_returns_png_data_uri():
    uri = qr.encode("XYZ123", 200)
    prefix = "data:image/png;base64,"
    assert uri.startswith(prefix)
    assert base64.b64decode(uri[len(prefix):]).startswith(b"\x89PNG")


def test_encoding_failure_is_wrapped(monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("no PIL")

    monkeypatch.setattr(qr.qrcode, "QRCode", broken)
    with pytest.raises(EncodingError):
        qr.encode("XYZ123")


async def test_slow_frame_reads_do_not_block_the_event_loop():
    capture = SlowCapture()
    stream = OpenCVStream(capture, fps=50, region=100, on_decode=lambda code: None)
    stream._detector = ScriptedDetector([])
    stream.start()

    ticks = 0
    deadline = time.monotonic() + 0.5
    while time.monotonic() < deadline:
        await asyncio.sleep(0.01)
        ticks += 1

    stream.stop()
    assert capture.reads >= 2
    assert ticks > 25
    assert capture.released == 1


async def test_code_read_after_stop_is_not_emitted():
    seen = []
    capture = SlowCapture()
    stream = OpenCVStream(capture, fps=50, region=100, on_decode=seen.append)
    stream._detector = ScriptedDetector(["XYZ123"])
    stream.start()
    await asyncio.sleep(0.01)  # first read is in flight on the worker thread

    stream.stop()
    await asyncio.sleep(0.1)
    assert seen == []
