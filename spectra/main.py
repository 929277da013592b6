import logging
from time import monotonic

from fastapi import Depends, FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.responses import Response

from spectra.api.cables import router as cables_router
from spectra.api.connections import router as connections_router
from spectra.api.customers import router as customers_router
from spectra.api.geojson import router as geojson_router
from spectra.api.nodes import router as nodes_router
from spectra.db import get_db
from spectra.errors import register_error_handlers
from spectra.logging import configure_logging
from spectra.metrics import observe_request

app = FastAPI(title="SPECTRA fiber inventory API")
logger = logging.getLogger(__name__)
configure_logging()
register_error_handlers(app)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = monotonic()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        route = request.scope.get("route")
        path = getattr(route, "path", None) or "unmatched"
        observe_request(request.method, path, status_code, monotonic() - start)


app.include_router(nodes_router, prefix="/api")
app.include_router(cables_router, prefix="/api")
app.include_router(connections_router, prefix="/api")
app.include_router(customers_router, prefix="/api")
app.include_router(geojson_router, prefix="/api")


@app.get("/api/health")
def health_check(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"success": True, "status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
