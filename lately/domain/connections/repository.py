"""Connection repository - Database operations for platform connections"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import PlatformConnection


class ConnectionRepository:
    """Repository for platform connection database operations"""

    @staticmethod
    def get_connection(db: Session, provider_id: int, platform: str) -> Optional[PlatformConnection]:
        return (
            db.query(PlatformConnection)
            .filter(PlatformConnection.provider_id == provider_id, PlatformConnection.platform == platform)
            .first()
        )

    @staticmethod
    def get_connection_by_id(db: Session, connection_id: int) -> Optional[PlatformConnection]:
        return db.query(PlatformConnection).filter(PlatformConnection.id == connection_id).first()

    @staticmethod
    def get_connections(db: Session, provider_id: int) -> list[PlatformConnection]:
        return (
            db.query(PlatformConnection)
            .filter(PlatformConnection.provider_id == provider_id)
            .order_by(PlatformConnection.platform.asc())
            .all()
        )

    @staticmethod
    def save(db: Session, connection: PlatformConnection) -> PlatformConnection:
        db.add(connection)
        db.commit()
        db.refresh(connection)
        return connection
