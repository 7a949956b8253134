# joeyjob/services/booking/service_tree.py
"""Active booking form lookup and search of its serviceTree"""
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from joeyjob.core.errors import InvalidStateError, NotFoundError
from joeyjob.models.booking_form import BookingForm
from joeyjob.schemas.service_tree import ServiceNode

logger = logging.getLogger(__name__)


def get_active_form(db: Session, organization_id: str) -> BookingForm:
    """Most recent active, non-deleted booking form of the organization"""
    form = db.query(BookingForm).filter(
        BookingForm.organization_id == organization_id,
        BookingForm.is_active == True,  # noqa: E712
        BookingForm.deleted_at.is_(None),
    ).order_by(BookingForm.created_at.desc()).first()
    if not form:
        raise NotFoundError("No active booking form found for organization")
    return form


def find_service_node(tree: Optional[Dict[str, Any]], service_id: str) -> Optional[Dict[str, Any]]:
    """Depth-first search for a node of type 'service' with the given id"""
    if not tree or not isinstance(tree, dict):
        return None

    if tree.get("id") == service_id and tree.get("type") == "service":
        return tree

    for child in tree.get("children") or []:
        found = find_service_node(child, service_id)
        if found:
            return found

    return None


def find_service_in_tree(tree: Optional[Dict[str, Any]], service_id: str) -> Optional[ServiceNode]:
    node = find_service_node(tree, service_id)
    if not node:
        return None
    try:
        return ServiceNode.model_validate(node)
    except ValidationError as e:
        logger.error(f"Service {service_id} has an invalid configuration: {e}")
        raise InvalidStateError("Service configuration is invalid", details={"service_id": service_id}) from e


def get_bookable_service(form: BookingForm, service_id: str) -> ServiceNode:
    service = find_service_in_tree((form.form_config or {}).get("serviceTree"), service_id)
    if not service:
        raise NotFoundError("Service not found in booking form")
    return service
