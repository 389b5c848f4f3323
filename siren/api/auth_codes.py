from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from siren.api.deps import get_code_store
from siren.schemas.auth_code import (
    AuthCodeCancelled,
    AuthCodeIssued,
    AuthCodeLookup,
    AuthCodeRequest,
    AuthCodeStatus,
)
from siren.schemas.common import ApiResponse
from siren.services.code_store import CodeStore

router = APIRouter(prefix="/auth-code", tags=["auth-codes"])


@router.post("", response_model=ApiResponse[AuthCodeIssued], status_code=status.HTTP_200_OK)
def issue_auth_code(
    payload: AuthCodeRequest,
    code_store: CodeStore = Depends(get_code_store),
) -> ApiResponse[AuthCodeIssued]:
    issued = code_store.issue(payload.device_id)
    expires_in = int((issued.expires_at - issued.issued_at).total_seconds())
    return ApiResponse(data=AuthCodeIssued(code=issued.code, expires_at=issued.expires_at, expires_in=expires_in))


@router.get("", response_model=ApiResponse[AuthCodeLookup])
def lookup_auth_code(
    code: str = Query(..., min_length=1, max_length=12),
    code_store: CodeStore = Depends(get_code_store),
) -> ApiResponse[AuthCodeLookup]:
    owner = code_store.lookup(code)
    return ApiResponse(
        data=AuthCodeLookup(
            name=owner.owner_display_name,
            device_id=owner.owner_device_id,
            has_app=owner.has_app,
            owner_user_id=owner.owner_user_id,
        )
    )


@router.get("/active", response_model=ApiResponse[AuthCodeStatus])
def auth_code_status(
    device_id: str = Query(..., min_length=1, max_length=64),
    code_store: CodeStore = Depends(get_code_store),
) -> ApiResponse[AuthCodeStatus]:
    result = code_store.active_code(device_id)
    return ApiResponse(data=AuthCodeStatus(device_id=device_id, active=result.active, expires_at=result.expires_at))


@router.delete("", response_model=ApiResponse[AuthCodeCancelled])
def cancel_auth_code(
    device_id: str = Query(..., min_length=1, max_length=64),
    code_store: CodeStore = Depends(get_code_store),
) -> ApiResponse[AuthCodeCancelled]:
    cancelled = code_store.cancel(device_id)
    return ApiResponse(data=AuthCodeCancelled(device_id=device_id, cancelled=cancelled))
