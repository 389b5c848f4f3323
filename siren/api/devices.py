from __future__ import annotations

from fastapi import APIRouter, Depends, status

from siren.api.deps import get_registry
from siren.schemas.common import ApiResponse
from siren.schemas.device import (
    DeregisterDeviceRequest,
    DeviceOut,
    RegisterDeviceRequest,
    TokenUpdateOut,
    UpdateTokenRequest,
)
from siren.services.device_registry import DeviceRegistry

router = APIRouter(tags=["devices"])


@router.post("/register-device", response_model=ApiResponse[DeviceOut], status_code=status.HTTP_200_OK)
def register_device(
    payload: RegisterDeviceRequest,
    registry: DeviceRegistry = Depends(get_registry),
) -> ApiResponse[DeviceOut]:
    device = registry.register(
        payload.device_id,
        payload.user_id,
        payload.device_name,
        push_token=payload.apns_token,
    )
    return ApiResponse(data=DeviceOut.from_model(device))


@router.post("/deregister-device", response_model=ApiResponse[DeviceOut], status_code=status.HTTP_200_OK)
def deregister_device(
    payload: DeregisterDeviceRequest,
    registry: DeviceRegistry = Depends(get_registry),
) -> ApiResponse[DeviceOut]:
    device = registry.deregister(payload.device_id, owner_user_id=payload.user_id)
    return ApiResponse(data=DeviceOut.from_model(device))


@router.get("/devices/{device_id}", response_model=ApiResponse[DeviceOut])
def get_device(device_id: str, registry: DeviceRegistry = Depends(get_registry)) -> ApiResponse[DeviceOut]:
    return ApiResponse(data=DeviceOut.from_model(registry.get(device_id)))


@router.post("/update-token", response_model=ApiResponse[TokenUpdateOut], status_code=status.HTTP_200_OK)
def update_token(
    payload: UpdateTokenRequest,
    registry: DeviceRegistry = Depends(get_registry),
) -> ApiResponse[TokenUpdateOut]:
    result = registry.update_push_token(payload.device_id, payload.apns_token)
    return ApiResponse(
        data=TokenUpdateOut(
            device_id=payload.device_id,
            changed=result.changed,
            relationships_updated=result.relationships_updated,
        )
    )
