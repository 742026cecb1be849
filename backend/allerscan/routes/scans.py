"""
AllerScan Backend — Scan History Route Handlers
=================================================

What:  Read and delete the caller's past scans.

    GET    /api/scans             → cursor-paginated list, X-Total-Count header
    GET    /api/scans/{scan_id}   → full stored analysis
    DELETE /api/scans/{scan_id}   → 204

Example client usage (infinite scroll):
    Page 1: GET /api/scans?limit=20
    Page 2: GET /api/scans?limit=20&cursor=<next_cursor of page 1>
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from allerscan.database import get_db_session
from allerscan.dependencies import get_current_user
from allerscan.models.user import User
from allerscan.schemas.common import ErrorResponse
from allerscan.schemas.scan import ScanDetail, ScanListResponse
from allerscan.services.scan_service import scan_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scans", tags=["Scans"])


@router.get(
    "",
    response_model=ScanListResponse,
    responses={
        400: {"description": "Invalid filter", "model": ErrorResponse},
        401: {"description": "No X-User-Email header", "model": ErrorResponse},
    },
    summary="List past scans with pagination",
)
async def list_scans(
    response: Response,
    limit: int = Query(default=20, ge=1, le=100, description="Items per page (max 100)"),
    cursor: str | None = Query(
        default=None,
        description="ISO 8601 created_at of the last item from the previous page",
    ),
    sort: str = Query(
        default="created_at_desc",
        description="'created_at_desc' (newest first) or 'created_at_asc'",
    ),
    risk_level: str | None = Query(
        default=None,
        description="Only scans with this final risk level: LOW, MEDIUM, HIGH or CRITICAL",
    ),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ScanListResponse:
    result = await scan_service.list_scans(
        db,
        user,
        limit=limit,
        cursor=cursor,
        sort=sort,
        risk_level=risk_level,
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.get(
    "/{scan_id}",
    response_model=ScanDetail,
    responses={
        404: {"description": "Scan not found", "model": ErrorResponse},
    },
    summary="Get a single scan",
)
async def get_scan(
    scan_id: UUID,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ScanDetail:
    result = await scan_service.get_scan(db, user, scan_id)
    # Scans never change after creation
    response.headers["Cache-Control"] = "private, max-age=3600"
    return result


@router.delete(
    "/{scan_id}",
    status_code=204,
    responses={
        404: {"description": "Scan not found", "model": ErrorResponse},
    },
    summary="Delete a scan",
)
async def delete_scan(
    scan_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await scan_service.delete_scan(db, user, scan_id)
    return Response(status_code=204)
