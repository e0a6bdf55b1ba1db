from __future__ import annotations
import logging
from typing import Callable, Dict

from ..core.camera import Camera
from ..core.config import Settings, get_settings
from .gym_api import GymApiClient
from .orchestrator import CheckInOrchestrator, Encoder, Phase

logger = logging.getLogger(__name__)

class CheckInSessions:
    """One in-memory check-in flow per signed-in staff member, for the life of the process."""

    def __init__(self, api: GymApiClient, camera: Camera, encoder: Encoder, settings: Settings | None = None):
        self._api = api
        self._camera = camera
        self._encoder = encoder
        self._settings = settings or get_settings()
        self._flows: Dict[str, CheckInOrchestrator] = {}

    def get(self, subject: str, identity: Callable[[], str | None] | None = None) -> CheckInOrchestrator:
        flow = self._flows.get(subject)
        if flow is None:
            flow = CheckInOrchestrator(
                self._api,
                self._camera,
                identity=identity or (lambda: subject),
                encoder=self._encoder,
                settings=self._settings,
            )
            self._flows[subject] = flow
        return flow

    def __len__(self) -> int:
        return len(self._flows)

    def discard_idle(self, subject: str) -> None:
        """Forget a flow that has been backed out of, so the map stays bounded by active staff."""
        flow = self._flows.get(subject)
        if flow is None or flow.phase is not Phase.IDLE or flow.mode is not None or flow.scanning:
            return
        del self._flows[subject]

    async def close_all(self) -> None:
        flows, self._flows = list(self._flows.values()), {}
        for flow in flows:
            await flow.close()
        logger.info("closed %d check-in session(s)", len(flows))
