from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from spectra.db import get_db
from spectra.schemas.common import ItemResponse, ListResponse, MessageResponse
from spectra.schemas.customer import (
    BulkStatusResult,
    BulkStatusUpdate,
    CustomerCreate,
    CustomerRead,
    CustomerStatusUpdate,
    CustomerUpdate,
)
from spectra.services.customers import customers as customer_service
from spectra.services.response import item_response, message_response

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=ListResponse[CustomerRead])
def list_customers(
    node_id: str | None = None,
    status: str | None = None,
    search: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return customer_service.list_response(
        db,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order_dir=order_dir,
        node_id=node_id,
        status=status,
        search=search,
    )


@router.get("/los", response_model=ItemResponse[list[CustomerRead]])
def list_los_customers(db: Session = Depends(get_db)):
    return item_response(customer_service.list_los(db))


@router.get("/by-ont/{ont_sn}", response_model=ItemResponse[CustomerRead])
def get_customer_by_ont(ont_sn: str, db: Session = Depends(get_db)):
    return item_response(customer_service.get_by_ont_sn(db, ont_sn))


@router.post("/status/bulk", response_model=ItemResponse[BulkStatusResult])
def bulk_update_customer_status(payload: BulkStatusUpdate, db: Session = Depends(get_db)):
    return item_response(customer_service.bulk_update_status(db, payload), "Statuses updated")


@router.post(
    "",
    response_model=ItemResponse[CustomerRead],
    status_code=status.HTTP_201_CREATED,
)
def create_customer(payload: CustomerCreate, db: Session = Depends(get_db)):
    return item_response(customer_service.create(db, payload), "Customer created")


@router.get("/{customer_id}", response_model=ItemResponse[CustomerRead])
def get_customer(customer_id: str, db: Session = Depends(get_db)):
    return item_response(customer_service.get(db, customer_id))


@router.patch("/{customer_id}", response_model=ItemResponse[CustomerRead])
def update_customer(customer_id: str, payload: CustomerUpdate, db: Session = Depends(get_db)):
    return item_response(customer_service.update(db, customer_id, payload), "Customer updated")


@router.patch("/{customer_id}/status", response_model=ItemResponse[CustomerRead])
def update_customer_status(
    customer_id: str, payload: CustomerStatusUpdate, db: Session = Depends(get_db)
):
    return item_response(customer_service.update_status(db, customer_id, payload))


@router.delete("/{customer_id}", response_model=MessageResponse)
def delete_customer(customer_id: str, db: Session = Depends(get_db)):
    customer_service.delete(db, customer_id)
    return message_response("Customer deleted")
