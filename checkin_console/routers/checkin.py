from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..deps import get_checkin, get_claims, get_sessions
from ..core.errors import (
    BusyError, CaptureError, CheckInError, ServerError, TransportError, ValidationError,
)
from ..core.qr import render_png
from ..schemas import CheckInView, ManualCode, ModeSelect, PassView
from ..services.acquisition import Mode
from ..services.orchestrator import CheckInOrchestrator, Phase
from ..services.sessions import CheckInSessions

router = APIRouter(prefix="/checkin", tags=["checkin"])

def to_view(flow: CheckInOrchestrator) -> CheckInView:
    p = flow.current_pass
    pass_view = None
    if p is not None:
        pass_view = PassView(
            pass_code=p.pass_code, gym_name=p.gym_name, valid_until=p.valid_until,
            qr_image=p.qr_image, fields=p.fields,
        )
    phase = flow.phase
    return CheckInView(
        phase=phase.value,
        mode=flow.mode.value if flow.mode else None,
        scanning=flow.scanning,
        loading=phase is Phase.SUBMITTING,
        completing=phase is Phase.COMPLETING,
        completed=phase is Phase.COMPLETED,
        message=flow.message,
        error=flow.error,
        completion_error=flow.completion_error,
        pass_=pass_view,
    )

def _http_error(exc: CheckInError) -> HTTPException:
    if isinstance(exc, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, BusyError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, CaptureError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, (ServerError, TransportError)):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=exc.message)

@router.get("", response_model=CheckInView)
async def current_state(flow: CheckInOrchestrator = Depends(get_checkin)):
    return to_view(flow)

@router.post("/mode", response_model=CheckInView)
async def select_mode(payload: ModeSelect, flow: CheckInOrchestrator = Depends(get_checkin)):
    try:
        await flow.select_mode(Mode(payload.mode))
    except CheckInError as exc:
        raise _http_error(exc)
    return to_view(flow)

# Manual entry. Scanned codes are submitted by the camera loop; poll GET /checkin.
@router.post("/code", response_model=CheckInView)
async def submit_code(payload: ManualCode, flow: CheckInOrchestrator = Depends(get_checkin)):
    try:
        await flow.submit_manual(payload.pass_code)
    except CheckInError as exc:
        raise _http_error(exc)
    return to_view(flow)

@router.post("/complete", response_model=CheckInView)
async def complete(flow: CheckInOrchestrator = Depends(get_checkin)):
    try:
        await flow.complete()
    except CheckInError as exc:
        raise _http_error(exc)
    return to_view(flow)

@router.post("/back", response_model=CheckInView)
async def back(
    flow: CheckInOrchestrator = Depends(get_checkin),
    claims: dict = Depends(get_claims),
    sessions: CheckInSessions = Depends(get_sessions),
):
    await flow.back()
    view = to_view(flow)
    sessions.discard_idle(str(claims["sub"]))
    return view

# PNG of the current pass code for printing or a second screen
@router.get("/qr.png")
async def pass_qr_png(flow: CheckInOrchestrator = Depends(get_checkin)):
    p = flow.current_pass
    if p is None or not p.pass_code:
        raise HTTPException(status_code=404, detail="No pass to render")
    try:
        png = render_png(p.pass_code)
    except CheckInError as exc:
        raise _http_error(exc)
    return Response(content=png, media_type="image/png")
