from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from spectra.db import get_db
from spectra.schemas.common import ItemResponse, ListResponse, MessageResponse
from spectra.schemas.network import (
    CableCreate,
    CableRead,
    CableUpdate,
    CoreRead,
    CoreUpdate,
    TubeRead,
)
from spectra.services.network import cables as cable_service
from spectra.services.response import item_response, message_response

router = APIRouter(prefix="/cables", tags=["cables"])


@router.get("", response_model=ListResponse[CableRead])
def list_cables(
    type: str | None = None,
    status: str | None = None,
    origin_node_id: str | None = None,
    dest_node_id: str | None = None,
    search: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return cable_service.list_response(
        db,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order_dir=order_dir,
        type=type,
        status=status,
        origin_node_id=origin_node_id,
        dest_node_id=dest_node_id,
        search=search,
    )


@router.post(
    "",
    response_model=ItemResponse[CableRead],
    status_code=status.HTTP_201_CREATED,
)
def create_cable(payload: CableCreate, db: Session = Depends(get_db)):
    return item_response(cable_service.create(db, payload), "Cable created")


@router.get("/{cable_id}", response_model=ItemResponse[CableRead])
def get_cable(cable_id: str, db: Session = Depends(get_db)):
    return item_response(cable_service.get(db, cable_id))


@router.patch("/{cable_id}", response_model=ItemResponse[CableRead])
def update_cable(cable_id: str, payload: CableUpdate, db: Session = Depends(get_db)):
    return item_response(cable_service.update(db, cable_id, payload), "Cable updated")


@router.delete("/{cable_id}", response_model=MessageResponse)
def delete_cable(cable_id: str, db: Session = Depends(get_db)):
    cable_service.delete(db, cable_id)
    return message_response("Cable deleted")


@router.get("/{cable_id}/cores", response_model=ItemResponse[list[CoreRead]])
def list_cable_cores(
    cable_id: str,
    status: str | None = None,
    db: Session = Depends(get_db),
):
    return item_response(cable_service.list_cores(db, cable_id, status=status))


@router.patch("/{cable_id}/cores/{core_id}", response_model=ItemResponse[CoreRead])
def update_cable_core(
    cable_id: str,
    core_id: str,
    payload: CoreUpdate,
    db: Session = Depends(get_db),
):
    return item_response(
        cable_service.update_core(db, cable_id, core_id, payload), "Core updated"
    )


@router.get("/{cable_id}/tubes", response_model=ItemResponse[list[TubeRead]])
def list_cable_tubes(cable_id: str, db: Session = Depends(get_db)):
    return item_response(cable_service.tubes(db, cable_id))
