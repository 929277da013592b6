"""GeoJSON API for map visualization."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from spectra.db import get_db
from spectra.services.network import geojson as geojson_service

router = APIRouter(prefix="/geojson", tags=["geojson"])


@router.get("/nodes")
def get_nodes_geojson(
    type: str | None = None,
    status: str | None = None,
    db: Session = Depends(get_db),
):
    """Return nodes as a GeoJSON FeatureCollection of Points."""
    return geojson_service.build_nodes_geojson(db, type=type, status=status)


@router.get("/cables")
def get_cables_geojson(
    type: str | None = None,
    status: str | None = None,
    db: Session = Depends(get_db),
):
    """Return cable routes as a GeoJSON FeatureCollection of LineStrings."""
    return geojson_service.build_cables_geojson(db, type=type, status=status)
