from fastapi import APIRouter

from siren.api.auth_codes import router as auth_codes_router
from siren.api.contacts import router as contacts_router
from siren.api.devices import router as devices_router
from siren.api.emergency import router as emergency_router
from siren.api.public.health import router as health_router


api_router = APIRouter()
api_router.include_router(health_router)

core_router = APIRouter(prefix="/api")
core_router.include_router(devices_router)
core_router.include_router(auth_codes_router)
core_router.include_router(contacts_router)
core_router.include_router(emergency_router)

api_router.include_router(core_router)
