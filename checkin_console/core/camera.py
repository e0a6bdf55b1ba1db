from __future__ import annotations
import asyncio
import logging
import threading
from typing import Callable, Protocol

import cv2

from .errors import CaptureError

logger = logging.getLogger(__name__)

REAR = "environment"
FRONT = "user"
CAPTURE_FAILED = "Failed to start camera. Please check permissions."

OnDecode = Callable[[str], None]

class FrameStream(Protocol):
    def stop(self) -> None: ...

class Camera(Protocol):
    async def open(self, *, facing: str, fps: int, region: int, on_decode: OnDecode) -> FrameStream:
        """Start streaming frames; `on_decode` receives every decoded code. Raises CaptureError."""
        ...


class OpenCVStream:
    """Frame loop over a cv2.VideoCapture, driven by an asyncio task.

    Reading and decoding a frame blocks, so each grab runs on a worker thread
    while the loop awaits it. `stop()` is synchronous: once it returns no further
    `on_decode` call is made and the capture device has been released.
    """

    def __init__(self, capture: "cv2.VideoCapture", *, fps: int, region: int, on_decode: OnDecode):
        self._capture = capture
        self._interval = 1.0 / max(fps, 1)
        self._region = region
        self._on_decode = on_decode
        self._detector = cv2.QRCodeDetector()
        self._stopped = False
        self._released = False
        self._lock = threading.Lock()  # guards read against release
        self._task: asyncio.Task | None = None

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    def _crop(self, frame):
        h, w = frame.shape[:2]
        side = min(self._region, h, w)
        top, left = (h - side) // 2, (w - side) // 2
        return frame[top:top + side, left:left + side]

    def _decode(self, frame) -> str | None:
        try:
            text, _points, _ = self._detector.detectAndDecode(self._crop(frame))
        except cv2.error as exc:
            logger.debug("frame decode failed: %s", exc)
            return None
        return text or None

    def _grab(self) -> str | None:
        with self._lock:
            if self._released:
                return None
            ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        return self._decode(frame)

    async def _run(self) -> None:
        while not self._stopped:
            text = await asyncio.to_thread(self._grab)
            # stop() may have run while the frame was being read
            if text and not self._stopped:
                self._on_decode(text)
            await asyncio.sleep(self._interval)

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        task = self._task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
        with self._lock:
            self._released = True
            self._capture.release()


class OpenCVCamera:
    def __init__(self, index: int = 0, rear_index: int | None = None):
        self.index = index
        self.rear_index = index if rear_index is None else rear_index

    async def open(self, *, facing: str, fps: int, region: int, on_decode: OnDecode) -> OpenCVStream:
        idx = self.rear_index if facing == REAR else self.index
        capture = await asyncio.to_thread(cv2.VideoCapture, idx)
        if not capture.isOpened():
            capture.release()
            logger.warning("camera %s could not be opened", idx)
            raise CaptureError(CAPTURE_FAILED)
        capture.set(cv2.CAP_PROP_FPS, fps)
        stream = OpenCVStream(capture, fps=fps, region=region, on_decode=on_decode)
        stream.start()
        logger.info("camera %s opened facing=%s fps=%s region=%s", idx, facing, fps, region)
        return stream
