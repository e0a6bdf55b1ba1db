from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Literal
from pydantic import BaseModel, Field

class ModeSelect(BaseModel):
    mode: Literal["scan", "manual"]

class ManualCode(BaseModel):
    pass_code: str = ""

class PassView(BaseModel):
    pass_code: str | None = None
    gym_name: str | None = None
    valid_until: datetime | None = None
    qr_image: str | None = None  # server URL or generated data URI
    fields: Dict[str, Any] = {}

class CheckInView(BaseModel):
    phase: Literal["idle", "submitting", "pending_completion", "completing", "completed"]
    mode: Literal["scan", "manual"] | None = None
    scanning: bool = False
    loading: bool = False
    completing: bool = False
    completed: bool = False
    message: str | None = None
    error: str | None = None
    completion_error: str | None = None
    pass_: PassView | None = Field(default=None, alias="pass")

    model_config = {"populate_by_name": True}
