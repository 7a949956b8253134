# joeyjob/services/simpro/connection_service.py
"""Build SimPro clients from an organization's stored connection"""
import logging
from datetime import datetime, timezone
from typing import Optional

from cryptography.fernet import InvalidToken
from sqlalchemy.orm import Session

from joeyjob.models.organization import SimproConnection
from joeyjob.services.simpro.simpro_client import SimproClient, SimproConfigurationError
from joeyjob.utils.encryption import decrypt_token, encrypt_token

logger = logging.getLogger(__name__)


class SimproConnectionService:
    """Resolves the SimPro connection for an organization"""

    @staticmethod
    def get_connection(db: Session, organization_id: str) -> Optional[SimproConnection]:
        return db.query(SimproConnection).filter_by(organization_id=organization_id).first()

    @staticmethod
    def has_active_connection(db: Session, organization_id: str) -> bool:
        connection = SimproConnectionService.get_connection(db, organization_id)
        return bool(connection and connection.is_configured)

    @staticmethod
    def get_client_for_organization(db: Session, organization_id: str) -> SimproClient:
        """
        Create a SimproClient for the organization.

        Raises SimproConfigurationError when there is no connection, it is
        inactive, or the build/token data is incomplete.
        """
        connection = SimproConnectionService.get_connection(db, organization_id)
        if not connection:
            raise SimproConfigurationError("No Simpro account found for organization")
        if not connection.is_active:
            raise SimproConfigurationError("Simpro connection is disabled for organization")
        if not connection.build_name or not connection.domain:
            raise SimproConfigurationError("Missing Simpro build configuration for organization")
        if not connection.access_token_encrypted or not connection.refresh_token_encrypted:
            raise SimproConfigurationError("Missing Simpro tokens for organization")

        try:
            access_token = decrypt_token(connection.access_token_encrypted)
            refresh_token = decrypt_token(connection.refresh_token_encrypted)
        except (InvalidToken, ValueError) as e:
            raise SimproConfigurationError(f"Unable to decrypt Simpro tokens: {e}") from e

        async def persist_tokens(
                new_access_token: str,
                new_refresh_token: str,
                expires_at: datetime,
                refresh_expires_at: datetime,
        ) -> None:
            connection.access_token_encrypted = encrypt_token(new_access_token)
            connection.refresh_token_encrypted = encrypt_token(new_refresh_token)
            connection.token_expires_at = expires_at
            connection.refresh_token_expires_at = refresh_expires_at
            connection.last_refreshed_at = datetime.now(timezone.utc)
            db.commit()
            logger.info(f"Persisted refreshed Simpro tokens for organization {organization_id}")

        return SimproClient(
            build_name=connection.build_name,
            domain=connection.domain,
            access_token=access_token,
            refresh_token=refresh_token,
            on_token_refresh=persist_tokens,
        )
