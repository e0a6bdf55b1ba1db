"""
Two-phase check-in: submit a code to reserve the pass, then complete it once
staff confirm.

Phase is the single source of truth; every flag the screen needs is derived
from it. Resetting the flow (back, mode switch, teardown) bumps a generation
counter, and any response that arrives for an older generation is dropped
instead of being applied to the new flow.
"""
from __future__ import annotations
import asyncio
import enum
import logging
from typing import Callable, Optional

from ..core.camera import Camera
from ..core.config import Settings, get_settings
from ..core.errors import BusyError, CheckInError, ValidationError
from .acquisition import CodeAcquisition, Mode
from .adapter import CanonicalPass
from .gym_api import GymApiClient

logger = logging.getLogger(__name__)

SUBMIT_OK = "Check-in successful!"
COMPLETE_OK = "Check-in completed successfully!"
NO_PASS_CODE = "Pass code not found"

Encoder = Callable[[str, int], str]
IdentityProvider = Callable[[], Optional[str]]

class Phase(str, enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    PENDING_COMPLETION = "pending_completion"
    COMPLETING = "completing"
    COMPLETED = "completed"


class CheckInOrchestrator:
    def __init__(
        self,
        api: GymApiClient,
        camera: Camera,
        *,
        identity: IdentityProvider,
        encoder: Encoder,
        settings: Settings | None = None,
    ):
        self._api = api
        self._identity = identity
        self._encoder = encoder
        self._settings = settings or get_settings()
        self.acquisition = CodeAcquisition(camera, self._code_detected, self._settings)

        self._phase = Phase.IDLE
        self._settled = Phase.PENDING_COMPLETION
        self._generation = 0
        self._pass: CanonicalPass | None = None
        self._scan_task: asyncio.Task | None = None
        self.error: str | None = None
        self.message: str | None = None
        self.completion_error: str | None = None

    # --- read-only state for the presentation layer
    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def current_pass(self) -> CanonicalPass | None:
        return self._pass

    @property
    def mode(self) -> Mode | None:
        return self.acquisition.mode

    @property
    def scanning(self) -> bool:
        return self.acquisition.scanning

    @property
    def scan_submission(self) -> asyncio.Task | None:
        return self._scan_task

    def _caller(self) -> str:
        try:
            return self._identity() or ""
        except Exception:
            logger.exception("identity provider failed, sending empty identity")
            return ""

    def _reset(self) -> None:
        self._generation += 1
        self.acquisition.release()
        self._phase = Phase.IDLE
        self._pass = None
        self.error = None
        self.message = None
        self.completion_error = None

    # --- mode handling
    async def select_mode(self, mode: Mode) -> None:
        self._reset()
        if mode is Mode.MANUAL:
            self.acquisition.enter_manual()
            return
        try:
            await self.acquisition.enter_scan()
        except CheckInError as exc:
            self.error = exc.message
            raise

    async def back(self) -> None:
        self._reset()
        self.acquisition.leave()

    async def close(self) -> None:
        await self.back()

    def _code_detected(self, code: str) -> None:
        # camera is already stopped here, so at most one scan submission exists
        self._scan_task = asyncio.get_running_loop().create_task(self._submit_scanned(code))

    async def _submit_scanned(self, code: str) -> None:
        try:
            await self.submit(code)
        except CheckInError:
            pass  # already surfaced on self.error

    async def submit_manual(self, text: str | None) -> CanonicalPass | None:
        try:
            code = self.acquisition.manual_code(text)
        except ValidationError as exc:
            self.error = exc.message
            raise
        return await self.submit(code)

    # --- phase 1
    async def submit(self, code: str) -> CanonicalPass | None:
        """Reserve `code` with the gym API.

        Returns the canonical pass, or None when the flow was reset while the
        request was in flight.
        """
        if self._phase in (Phase.SUBMITTING, Phase.COMPLETING):
            raise BusyError("A check-in is already in progress")
        generation = self._generation
        self._phase = Phase.SUBMITTING
        self._pass = None
        self.error = self.message = self.completion_error = None

        try:
            record = await self._api.check_in(self._caller(), code)
        except CheckInError as exc:
            if generation == self._generation:
                self._phase = Phase.IDLE
                self.error = exc.message
            raise
        if generation != self._generation:
            logger.info("dropping check-in response for a flow that was reset")
            return None

        self.acquisition.release()
        pass_ = CanonicalPass(record)
        if pass_.server_qr is None and pass_.pass_code:
            try:
                pass_.attach_qr(self._encoder(pass_.pass_code, self._settings.qr_image_size))
            except Exception:
                # the textual code is still usable without an image
                logger.exception("could not generate QR image for pass")
        self._pass = pass_
        self._phase = Phase.PENDING_COMPLETION
        self.message = SUBMIT_OK
        logger.info("check-in reserved for pass %s", pass_.pass_code)
        return pass_

    # --- phase 2
    async def complete(self) -> CanonicalPass | None:
        pass_ = self._pass
        if pass_ is None or not pass_.pass_code:
            self.completion_error = NO_PASS_CODE
            raise ValidationError(NO_PASS_CODE)
        if self._phase is Phase.COMPLETING:
            raise BusyError("Check-in completion is already in progress")

        generation = self._generation
        self._settled = self._phase
        self._phase = Phase.COMPLETING
        self.completion_error = None
        try:
            record = await self._api.complete_check_in(self._caller(), pass_.pass_code)
        except CheckInError as exc:
            if generation == self._generation:
                self._phase = self._settled
                self.completion_error = exc.message
            raise
        if generation != self._generation:
            logger.info("dropping completion response for a flow that was reset")
            return None

        pass_.merge(record)
        self._phase = Phase.COMPLETED
        self.message = COMPLETE_OK
        logger.info("check-in completed for pass %s", pass_.pass_code)
        return pass_
