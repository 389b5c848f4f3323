from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from siren.api.deps import get_dispatcher, get_registry
from siren.core.errors import DeviceNotFound
from siren.schemas.alert import AlertList, AlertOut, AlertTriggered, EmergencyRequest
from siren.schemas.common import ApiResponse
from siren.services.alert_dispatcher import AlertDispatcher
from siren.services.device_registry import DeviceRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["emergency"])


def _dispatch_in_background(dispatcher: AlertDispatcher, alert_id: int) -> None:
    try:
        dispatcher.dispatch(alert_id)
    except Exception:
        # The AlertEvent row keeps the last recorded state.
        logger.exception("Dispatch of alert %s crashed", alert_id)


@router.post("/emergency", response_model=ApiResponse[AlertTriggered], status_code=status.HTTP_200_OK)
def trigger_emergency(
    payload: EmergencyRequest,
    background_tasks: BackgroundTasks,
    registry: DeviceRegistry = Depends(get_registry),
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
) -> ApiResponse[AlertTriggered]:
    owner_user_id = payload.user_id
    if not owner_user_id and payload.device_id:
        try:
            owner_user_id = registry.get(payload.device_id).owner_user_id
        except DeviceNotFound:
            if not payload.device_tokens:
                raise
            logger.warning("Emergency from unknown device %s, using explicit tokens only", payload.device_id)

    logger.info(
        "Emergency %s from owner %s (client timestamp %s)",
        payload.emergency_type,
        owner_user_id,
        payload.timestamp,
    )
    event = dispatcher.trigger(
        owner_user_id,
        emergency_type=payload.emergency_type,
        message=payload.message,
        priority=payload.priority,
        owner_device_id=payload.device_id,
        extra_tokens=payload.device_tokens,
    )
    if not event.is_terminal:
        background_tasks.add_task(_dispatch_in_background, dispatcher, event.alert_id)
    return ApiResponse(
        data=AlertTriggered(alert_id=event.alert_id, status=event.status, recipients=len(event.recipients))
    )


@router.get("/alerts/{alert_id}", response_model=ApiResponse[AlertOut])
def get_alert(alert_id: int, dispatcher: AlertDispatcher = Depends(get_dispatcher)) -> ApiResponse[AlertOut]:
    return ApiResponse(data=AlertOut.from_model(dispatcher.get_alert(alert_id)))


@router.get("/alerts", response_model=ApiResponse[AlertList])
def list_alerts(
    user_id: str = Query(..., min_length=1, max_length=64),
    limit: int = Query(50, ge=1, le=200),
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
) -> ApiResponse[AlertList]:
    alerts = [AlertOut.from_model(event) for event in dispatcher.alerts_for(user_id, limit=limit)]
    return ApiResponse(data=AlertList(user_id=user_id, alerts=alerts))
