"""Connection service - Stores platform credentials for providers"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import PlatformConnection, Provider
from ...shared.tokens import encrypt_token
from .repository import ConnectionRepository
from .schemas import ConnectionUpsert

logger = logging.getLogger(__name__)


class ConnectionService:
    """Service layer for platform connections"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ConnectionRepository()

    def upsert_connection(self, data: ConnectionUpsert) -> PlatformConnection:
        """Create or refresh the single connection for (provider, platform) and reactivate it"""
        if not self.db.query(Provider).filter(Provider.id == data.provider_id).first():
            raise HTTPException(status_code=404, detail="Provider not found")

        encrypted_access_token = encrypt_token(data.access_token)
        encrypted_refresh_token = encrypt_token(data.refresh_token) if data.refresh_token else None

        connection = self.repo.get_connection(self.db, data.provider_id, data.platform)
        if connection:
            connection.access_token = encrypted_access_token
            connection.refresh_token = encrypted_refresh_token
            connection.token_expires_at = data.token_expires_at
            connection.platform_user_id = data.platform_user_id
            if data.platform_specific_data is not None:
                connection.platform_specific_data = data.platform_specific_data
            connection.is_active = True
            connection.updated_at = datetime.utcnow()
        else:
            connection = PlatformConnection(
                provider_id=data.provider_id,
                platform=data.platform,
                access_token=encrypted_access_token,
                refresh_token=encrypted_refresh_token,
                token_expires_at=data.token_expires_at,
                platform_user_id=data.platform_user_id,
                platform_specific_data=data.platform_specific_data or {},
                is_active=True,
            )

        connection = self.repo.save(self.db, connection)
        logger.info(f"{data.platform} connected for provider {data.provider_id} (connection {connection.id})")
        return connection

    def list_connections(self, provider_id: int) -> list[PlatformConnection]:
        return self.repo.get_connections(self.db, provider_id)

    def deactivate_connection(self, connection_id: int) -> PlatformConnection:
        connection = self.repo.get_connection_by_id(self.db, connection_id)
        if not connection:
            raise HTTPException(status_code=404, detail="Connection not found")

        connection.is_active = False
        connection.updated_at = datetime.utcnow()
        connection = self.repo.save(self.db, connection)
        logger.info(f"{connection.platform} disconnected for provider {connection.provider_id}")
        return connection
