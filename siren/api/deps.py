from __future__ import annotations

from fastapi import Request

from siren.services.alert_dispatcher import AlertDispatcher
from siren.services.code_store import CodeStore
from siren.services.container import ServiceContainer
from siren.services.device_registry import DeviceRegistry
from siren.services.pairing import ContactPairing
from siren.services.relationship_graph import RelationshipGraph


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_code_store(request: Request) -> CodeStore:
    return get_services(request).code_store


def get_registry(request: Request) -> DeviceRegistry:
    return get_services(request).registry


def get_graph(request: Request) -> RelationshipGraph:
    return get_services(request).graph


def get_dispatcher(request: Request) -> AlertDispatcher:
    return get_services(request).dispatcher


def get_pairing(request: Request) -> ContactPairing:
    return get_services(request).pairing
