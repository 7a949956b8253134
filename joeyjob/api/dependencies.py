# joeyjob/api/dependencies.py
"""Shared route helpers"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from joeyjob.config.settings import get_settings
from joeyjob.core.errors import ConfigurationError
from joeyjob.services.simpro.connection_service import SimproConnectionService
from joeyjob.services.simpro.simpro_client import SimproClient, SimproConfigurationError

settings = get_settings()
logger = logging.getLogger(__name__)


def get_simpro_client(db: Session, organization_id: str, allow_missing: bool = False) -> Optional[SimproClient]:
    """
    SimPro client for the organization.

    Without a usable connection this returns None when allow_missing is set,
    otherwise raises ConfigurationError.
    """
    try:
        return SimproConnectionService.get_client_for_organization(db, organization_id)
    except SimproConfigurationError as e:
        if allow_missing:
            logger.info(f"No SimPro client for org {organization_id}: {e}")
            return None
        raise ConfigurationError(details={"reason": str(e)}) from e


def local_only_enabled() -> bool:
    return settings.BOOKING_EXTERNAL_FAILURE_POLICY == "local_only"
