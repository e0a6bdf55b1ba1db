"""
Turns the loose records the gym API returns into a canonical pass.

The API is not consistent about field names, so every canonical field is
resolved from a fixed, ordered alias list. Earlier aliases win; this order
decides which value is used when a response carries more than one alias, so
do not reorder or extend these lists casually.
"""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Sequence

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

PASS_CODE_ALIASES: tuple[str, ...] = ("pass_code", "passCode", "code")
GYM_NAME_ALIASES: tuple[str, ...] = ("gym_name", "gymName", "location_name")
VALID_UNTIL_ALIASES: tuple[str, ...] = ("valid_until", "validUntil", "expires_at", "expiresAt")
QR_IMAGE_ALIASES: tuple[str, ...] = ("qr_code", "qrCode")

_datetime = TypeAdapter(datetime)

def resolve(record: Mapping[str, Any], aliases: Sequence[str]) -> Any | None:
    for name in aliases:
        value = record.get(name)
        # null and empty string both fall through to the next alias
        if value is not None and value != "":
            return value
    return None

def parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        dt = _datetime.validate_python(value)
    except PydanticValidationError:
        logger.warning("ignoring unparsable expiry %r", value)
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class CanonicalPass:
    """One check-in's pass, as shown to staff.

    `pass_code` is fixed when the pass is built from the submit response and is
    what the completion call sends; later merges never change it.
    """

    def __init__(self, record: Mapping[str, Any]):
        self._fields: Dict[str, Any] = dict(record)
        code = resolve(record, PASS_CODE_ALIASES)
        self._pass_code: str | None = str(code) if code is not None else None
        self.generated_qr: str | None = None
        self._valid_until = parse_timestamp(resolve(record, VALID_UNTIL_ALIASES))

    @property
    def pass_code(self) -> str | None:
        return self._pass_code

    @property
    def gym_name(self) -> str | None:
        value = resolve(self._fields, GYM_NAME_ALIASES)
        return str(value) if value is not None else None

    @property
    def valid_until(self) -> datetime | None:
        return self._valid_until

    @property
    def server_qr(self) -> str | None:
        return resolve(self._fields, QR_IMAGE_ALIASES)

    @property
    def qr_image(self) -> str | None:
        return self.server_qr or self.generated_qr

    @property
    def fields(self) -> Dict[str, Any]:
        return dict(self._fields)

    def attach_qr(self, image: str) -> None:
        self.generated_qr = image

    def merge(self, record: Mapping[str, Any]) -> None:
        # response values win, keys it omits are kept
        self._fields.update(record)
        if resolve(record, VALID_UNTIL_ALIASES) is not None:
            self._valid_until = parse_timestamp(resolve(self._fields, VALID_UNTIL_ALIASES))

    def __repr__(self) -> str:
        return f"CanonicalPass(pass_code={self._pass_code!r}, gym_name={self.gym_name!r})"
