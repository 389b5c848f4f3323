from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from siren.core.clock import Clock, utcnow
from siren.services.alert_dispatcher import AlertDispatcher
from siren.services.code_store import CodeStore
from siren.services.pairing import ContactPairing
from siren.services.device_registry import DeviceRegistry
from siren.services.push_gateway import HttpPushGateway, PushGateway
from siren.services.relationship_graph import RelationshipGraph


@dataclass(slots=True)
class ServiceContainer:
    code_store: CodeStore
    registry: DeviceRegistry
    graph: RelationshipGraph
    dispatcher: AlertDispatcher
    pairing: ContactPairing


def build_services(
    session_factory: sessionmaker[Session],
    *,
    push_gateway: PushGateway | None = None,
    clock: Clock = utcnow,
) -> ServiceContainer:
    """Wire the process-wide service instances around one session factory."""
    graph = RelationshipGraph(session_factory, clock=clock)
    registry = DeviceRegistry(session_factory, graph, clock=clock)
    code_store = CodeStore(session_factory, clock=clock)
    dispatcher = AlertDispatcher(
        session_factory,
        graph,
        registry,
        push_gateway or HttpPushGateway(),
        clock=clock,
    )
    pairing = ContactPairing(session_factory, code_store, graph)
    return ServiceContainer(
        code_store=code_store, registry=registry, graph=graph, dispatcher=dispatcher, pairing=pairing
    )
