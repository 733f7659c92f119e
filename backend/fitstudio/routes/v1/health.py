"""Liveness and database health check (public)."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...api.dependencies.database import get_db
from ...database.session_utils import get_dialect_name

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db)) -> JSONResponse:
    data: Dict[str, Any] = {"status": "ok", "database": get_dialect_name(db)}
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning(f"Health check database query failed: {exc}")
        data["status"] = "degraded"
        return JSONResponse({"success": False, "data": data}, status_code=503)
    return JSONResponse({"success": True, "data": data})
