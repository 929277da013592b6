from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from spectra.db import get_db
from spectra.schemas.common import ItemResponse, ListResponse, MessageResponse
from spectra.schemas.network import (
    ConnectionCreate,
    ConnectionRead,
    FiberTraceRead,
    SpliceMatrixRead,
)
from spectra.services.network import connections as connection_service
from spectra.services.response import item_response, message_response

router = APIRouter(prefix="/connections", tags=["connections"])


@router.get("", response_model=ListResponse[ConnectionRead])
def list_connections(
    location_node_id: str | None = None,
    input_core_id: str | None = None,
    output_core_id: str | None = None,
    cable_id: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return connection_service.list_response(
        db,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order_dir=order_dir,
        location_node_id=location_node_id,
        input_core_id=input_core_id,
        output_core_id=output_core_id,
        cable_id=cable_id,
    )


@router.post(
    "",
    response_model=ItemResponse[ConnectionRead],
    status_code=status.HTTP_201_CREATED,
)
def create_connection(payload: ConnectionCreate, db: Session = Depends(get_db)):
    return item_response(connection_service.create(db, payload), "Connection created")


@router.get("/location/{node_id}", response_model=ItemResponse[list[ConnectionRead]])
def list_connections_at_location(node_id: str, db: Session = Depends(get_db)):
    return item_response(connection_service.by_location(db, node_id))


@router.get("/matrix/{node_id}", response_model=ItemResponse[SpliceMatrixRead])
def get_splice_matrix(node_id: str, db: Session = Depends(get_db)):
    return item_response(connection_service.splice_matrix(db, node_id))


@router.get("/trace/{core_id}", response_model=ItemResponse[FiberTraceRead])
def trace_core(core_id: str, db: Session = Depends(get_db)):
    return item_response(connection_service.trace(db, core_id))


@router.get("/{connection_id}", response_model=ItemResponse[ConnectionRead])
def get_connection(connection_id: str, db: Session = Depends(get_db)):
    return item_response(connection_service.get(db, connection_id))


@router.delete("/{connection_id}", response_model=MessageResponse)
def delete_connection(connection_id: str, db: Session = Depends(get_db)):
    connection_service.delete(db, connection_id)
    return message_response("Connection deleted")
