from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from spectra.db import get_db
from spectra.schemas.common import ItemResponse, ListResponse, MessageResponse
from spectra.schemas.network import NearbyNodeRead, NodeCreate, NodeRead, NodeUpdate
from spectra.services.network import nodes as node_service
from spectra.services.response import item_response, message_response

router = APIRouter(prefix="/nodes", tags=["nodes"])


@router.get("", response_model=ListResponse[NodeRead])
def list_nodes(
    type: str | None = None,
    status: str | None = None,
    search: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return node_service.list_response(
        db,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order_dir=order_dir,
        type=type,
        status=status,
        search=search,
    )


@router.get("/nearby", response_model=ItemResponse[list[NearbyNodeRead]])
def nearby_nodes(
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    radius_km: float = Query(default=1.0),
    type: str | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return item_response(
        node_service.nearby(db, latitude, longitude, radius_km, type=type, limit=limit)
    )


@router.post(
    "",
    response_model=ItemResponse[NodeRead],
    status_code=status.HTTP_201_CREATED,
)
def create_node(payload: NodeCreate, db: Session = Depends(get_db)):
    return item_response(node_service.create(db, payload), "Node created")


@router.get("/{node_id}", response_model=ItemResponse[NodeRead])
def get_node(node_id: str, db: Session = Depends(get_db)):
    return item_response(node_service.get(db, node_id))


@router.patch("/{node_id}", response_model=ItemResponse[NodeRead])
def update_node(node_id: str, payload: NodeUpdate, db: Session = Depends(get_db)):
    return item_response(node_service.update(db, node_id, payload), "Node updated")


@router.delete("/{node_id}", response_model=MessageResponse)
def delete_node(node_id: str, db: Session = Depends(get_db)):
    node_service.delete(db, node_id)
    return message_response("Node deleted")
