from __future__ import annotations
import logging
from typing import Any, Dict

import httpx

from ..core.config import Settings, get_settings
from ..core.errors import ServerError, TransportError

logger = logging.getLogger(__name__)

CHECK_IN = "Check-in"
CHECK_IN_COMPLETION = "Check-in completion"

def error_message(response: httpx.Response, verb: str) -> str:
    """Human-readable failure text: JSON message/error, then raw text, then the status line."""
    fallback = f"{verb} failed: {response.status_code} {response.reason_phrase}"
    try:
        data = response.json()
    except ValueError:
        return response.text or fallback
    if isinstance(data, dict):
        msg = data.get("message") or data.get("error")
        if msg:
            return str(msg)
    return fallback

def _read_record(response: httpx.Response, verb: str) -> Dict[str, Any]:
    if not response.content.strip():
        return {}
    try:
        data = response.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        raise ServerError(f"{verb} failed: unexpected response body", response.status_code)
    return data


class GymApiClient:
    """Outbound calls to the gym API's two-phase check-in endpoints.

    The identity and the pass code travel as request headers, the body is empty.
    """

    def __init__(self, client: httpx.AsyncClient, settings: Settings | None = None):
        self._client = client
        self._settings = settings or get_settings()

    def _headers(self, identity: str | None, pass_code: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            self._settings.identity_header: identity or "",
            self._settings.pass_code_header: pass_code,
        }

    async def _post(self, url: str, identity: str | None, pass_code: str, *, verb: str, unreachable: str) -> Dict[str, Any]:
        try:
            r = await self._client.post(
                url,
                headers=self._headers(identity, pass_code),
                timeout=self._settings.api_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s request to %s failed: %s", verb, url, exc)
            raise TransportError(unreachable) from exc
        if r.is_success:
            return _read_record(r, verb)
        msg = error_message(r, verb)
        logger.warning("%s rejected with %s: %s", verb, r.status_code, msg)
        raise ServerError(msg, r.status_code)

    async def check_in(self, identity: str | None, pass_code: str) -> Dict[str, Any]:
        return await self._post(
            self._settings.check_in_url, identity, pass_code,
            verb=CHECK_IN, unreachable="Failed to process check-in. Please try again.",
        )

    async def complete_check_in(self, identity: str | None, pass_code: str) -> Dict[str, Any]:
        return await self._post(
            self._settings.check_in_complete_url, identity, pass_code,
            verb=CHECK_IN_COMPLETION, unreachable="Failed to complete check-in. Please try again.",
        )
