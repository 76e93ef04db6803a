"""Connection router - FastAPI endpoints for provider platform connections"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from .schemas import ConnectionResponse, ConnectionUpsert
from .service import ConnectionService

router = APIRouter(prefix="/connections", tags=["Connections"])


def get_connection_service(db: Session = Depends(get_db)) -> ConnectionService:
    """Dependency injection for ConnectionService"""
    return ConnectionService(db)


@router.put("", response_model=ConnectionResponse)
async def upsert_connection(data: ConnectionUpsert, service: ConnectionService = Depends(get_connection_service)):
    """Store platform credentials for a provider (tokens are encrypted at rest)"""
    return service.upsert_connection(data)


@router.get("", response_model=list[ConnectionResponse])
async def list_connections(
    provider_id: int = Query(...),
    service: ConnectionService = Depends(get_connection_service),
):
    return service.list_connections(provider_id)


@router.delete("/{connection_id}", response_model=ConnectionResponse)
async def deactivate_connection(connection_id: int, service: ConnectionService = Depends(get_connection_service)):
    """Disconnect a platform; stored synced data is kept"""
    return service.deactivate_connection(connection_id)
