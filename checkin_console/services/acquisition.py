from __future__ import annotations
import enum
import logging
from typing import Callable

from ..core.camera import REAR, Camera, FrameStream
from ..core.config import Settings, get_settings
from ..core.errors import CaptureError, ValidationError

logger = logging.getLogger(__name__)

EMPTY_CODE = "Please enter a pass code"
NOT_MANUAL = "Choose manual entry to type a pass code"

class Mode(str, enum.Enum):
    SCAN = "scan"
    MANUAL = "manual"


class CodeAcquisition:
    """Produces one pass code at a time, from the camera or from typed input.

    The camera stream is owned here and only here. Every way out of scan mode
    ends in `release()`.
    """

    def __init__(self, camera: Camera, on_code: Callable[[str], None], settings: Settings | None = None):
        self._camera = camera
        self._on_code = on_code
        self._settings = settings or get_settings()
        self._stream: FrameStream | None = None
        self._opening = False
        self.mode: Mode | None = None

    @property
    def scanning(self) -> bool:
        return self._stream is not None

    def manual_code(self, text: str | None) -> str:
        if self.mode is not Mode.MANUAL:
            raise ValidationError(NOT_MANUAL)
        code = (text or "").strip()
        if not code:
            raise ValidationError(EMPTY_CODE)
        return code

    async def enter_scan(self) -> None:
        self.mode = Mode.SCAN
        if self._stream is not None or self._opening:
            return
        self._opening = True
        try:
            stream = await self._camera.open(
                facing=REAR,
                fps=self._settings.scan_fps,
                region=self._settings.scan_region,
                on_decode=self._decoded,
            )
        except CaptureError:
            raise
        except Exception as exc:
            logger.exception("camera open failed")
            raise CaptureError("Failed to start camera. Please check permissions.") from exc
        finally:
            self._opening = False
        if self.mode is not Mode.SCAN:
            # left scan mode while the camera was starting
            stream.stop()
            return
        self._stream = stream

    def enter_manual(self) -> None:
        self.release()
        self.mode = Mode.MANUAL

    def _decoded(self, code: str) -> None:
        if self._stream is None:
            return
        self.release()
        logger.info("code detected by camera")
        self._on_code(code)

    def release(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        except Exception:
            logger.exception("error stopping camera stream")

    def leave(self) -> None:
        self.release()
        self.mode = None
