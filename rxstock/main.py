import logging
import os
from contextlib import asynccontextmanager
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from strawberry.fastapi import GraphQLRouter

from rxstock.core.db import create_engine, create_session_factory
from rxstock.graphql.schema import build_context, schema
from rxstock.services.catalog_store import SqlCatalogStore
from rxstock.services.labels import build_label_sheet, export_label_sheet
from rxstock.services.lot_codes import validate_clinic_lot_code

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = create_engine()
    store = SqlCatalogStore(create_session_factory(engine))
    app.state.catalog_store = store
    app.state.graphql_context = build_context(store)
    logger.info("Inventory database engine ready")
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Inventory database engine disposed")


async def get_context(request: Request) -> dict:
    return dict(request.app.state.graphql_context)


app = FastAPI(title="RxStock Backend", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(GraphQLRouter(schema, context_getter=get_context), prefix="/graphql")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/labels/export")
async def export_labels(
    request: Request,
    clinic_id: UUID,
    lot_code: str,
    entry_date: date,
    medication_name: str,
    dosage: str,
    quantity: int = 1,
    fmt: Annotated[str, Query(alias="format")] = "csv",
) -> Response:
    """
    Download the label sheet for units checked in together, as CSV or Excel.

    Parameters
    ----------
    clinic_id  : clinic receiving the units; its lot-location setting applies.
    lot_code   : drawer code the units go into, e.g. "BL".
    entry_date : check-in date (YYYY-MM-DD).
    quantity   : number of units (1-99); more than one adds a sequence suffix per label.
    format     : "csv" (default) or "excel".
    """
    fmt = fmt.lower()
    if fmt not in {"csv", "excel"}:
        raise HTTPException(status_code=400, detail=f"Unsupported format: {fmt}")

    store = request.app.state.catalog_store
    if not await validate_clinic_lot_code(store, clinic_id, lot_code):
        raise HTTPException(status_code=400, detail=f"Invalid lot code for clinic: {lot_code!r}")

    try:
        # Lot code already checked against the clinic setting
        sheet = build_label_sheet(lot_code, entry_date, medication_name, dosage, quantity)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    data = export_label_sheet(sheet, fmt=fmt)

    if fmt == "excel":
        media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        extension  = "xlsx"
    else:
        media_type = "text/csv; charset=utf-8"
        extension  = "csv"

    filename = f"labels_{lot_code.upper()}_{entry_date:%Y%m%d}.{extension}"
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
