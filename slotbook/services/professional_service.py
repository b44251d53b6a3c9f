"""Lookups for professionals, clients and services."""

from uuid import UUID

from sqlalchemy.orm import Session

from slotbook.core.exceptions import NotFoundError
from slotbook.db.models import Client, Professional, Service


def get_professional(db: Session, professional_id: UUID) -> Professional:
    professional = db.get(Professional, professional_id)
    if not professional:
        raise NotFoundError("Professional", professional_id)
    return professional


def get_client(db: Session, client_id: UUID, professional_id: UUID | None = None) -> Client:
    """Get a client, optionally scoped to a professional."""
    client = db.get(Client, client_id)
    if not client or (professional_id and client.professional_id != professional_id):
        raise NotFoundError("Client", client_id)
    return client


def get_service(db: Session, service_id: UUID, professional_id: UUID | None = None) -> Service:
    """Get a service, optionally scoped to a professional."""
    service = db.get(Service, service_id)
    if not service or (professional_id and service.professional_id != professional_id):
        raise NotFoundError("Service", service_id)
    return service
