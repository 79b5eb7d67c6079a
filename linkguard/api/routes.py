import time
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from linkguard.config import settings
from linkguard.core.errors import AnalysisTimeoutError, BatchLimitError, InvalidURLError
from linkguard.database import get_db
from linkguard.schemas import (
    BatchCheckRequest,
    BatchCheckResponse,
    CheckRequest,
    CheckResponse,
    ExpandRequest,
    ExpandResponse,
    ScanResponse,
)
from linkguard.services.analysis_service import AnalysisService
from linkguard.services.history_service import HistoryService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_analysis_service(request: Request) -> AnalysisService:
    """The engine built at startup, shared by every request"""
    return request.app.state.analysis_service


def error_detail(message: str, error: Optional[Exception] = None) -> dict:
    detail = {"success": False, "error": message}
    if error is not None and not settings.is_production:
        detail["details"] = str(error)
    return detail


def store_report(db: Session, report, processing_time: float) -> Optional[int]:
    """Persist a report when SAVE_SCANS is on; storage failures never fail the analysis"""
    if not settings.SAVE_SCANS:
        return None
    try:
        return HistoryService(db).save(report, processing_time).id
    except SQLAlchemyError as e:
        logger.error(f"❌ Scan history unavailable, result not stored: {e}")
        return None

# ============================================================================
# ANALYSIS ENDPOINTS
# ============================================================================

@router.post("/check", response_model=CheckResponse)
async def check_url(
    payload: CheckRequest,
    service: AnalysisService = Depends(get_analysis_service),
    db: Session = Depends(get_db)
):
    """Expand (if shortened) and analyze a single URL"""
    start = time.time()
    try:
        report = await service.analyze(payload.url, payload.timeout)
    except InvalidURLError as e:
        raise HTTPException(status_code=400, detail=error_detail(str(e)))
    except AnalysisTimeoutError as e:
        raise HTTPException(status_code=408, detail=error_detail("Request timeout - URL analysis took too long", e))
    except Exception as e:
        logger.exception(f"❌ Error in /check for {payload.url}: {e}")
        raise HTTPException(status_code=500, detail=error_detail("Internal server error during URL analysis", e))

    processing_time = time.time() - start
    scan_id = await run_in_threadpool(store_report, db, report, processing_time)

    return {
        "success": True,
        "data": report.to_dict(),
        "was_expanded": report.resolved_url is not None,
        "expanded_url": report.resolved_url,
        "original_input": payload.url,
        "scan_id": scan_id,
        "metadata": {
            "checked_at": datetime.now(timezone.utc),
            "processing_time": round(processing_time, 3),
            "api_version": settings.VERSION,
        },
    }


@router.post("/check/batch", response_model=BatchCheckResponse)
async def check_batch(
    payload: BatchCheckRequest,
    service: AnalysisService = Depends(get_analysis_service),
    db: Session = Depends(get_db)
):
    """Analyze up to BATCH_MAX_URLS URLs; one failure never fails the batch"""
    start = time.time()
    try:
        items = await service.analyze_batch(payload.urls, payload.timeout)
    except BatchLimitError as e:
        raise HTTPException(status_code=400, detail=error_detail(str(e)))

    processing_time = time.time() - start
    for item in items:
        if item.success:
            await run_in_threadpool(store_report, db, item.report, processing_time)

    results = [item.to_dict() for item in items]
    succeeded = sum(1 for item in items if item.success)
    return {
        "success": True,
        "total": len(items),
        "succeeded": succeeded,
        "failed": len(items) - succeeded,
        "results": results,
        "processing_time": round(processing_time, 3),
    }


@router.post("/expand-url", response_model=ExpandResponse)
async def expand_url(
    payload: ExpandRequest,
    service: AnalysisService = Depends(get_analysis_service)
):
    """Resolve a short link without scoring it"""
    start = time.time()
    try:
        resolved = await service.expand(payload.url)
    except InvalidURLError as e:
        raise HTTPException(status_code=400, detail=error_detail(str(e)))
    except Exception as e:
        logger.exception(f"❌ Error in /expand-url for {payload.url}: {e}")
        raise HTTPException(status_code=500, detail=error_detail("Failed to expand URL", e))

    return {
        "success": True,
        "original_url": payload.url,
        "expanded_url": resolved.resolved_url,
        "is_expanded": resolved.expanded,
        "method_used": resolved.method,
        "attempts": [a.to_dict() for a in resolved.attempts],
        "processing_time": round(time.time() - start, 3),
    }

# ============================================================================
# SCAN HISTORY ENDPOINTS
# ============================================================================

@router.get("/scans", response_model=List[ScanResponse])
def list_scans(skip: int = 0, limit: int = 50, verdict: str = None, db: Session = Depends(get_db)):
    return HistoryService(db).list_scans(skip=skip, limit=min(limit, 200), verdict=verdict)

@router.get("/scans/{scan_id}", response_model=ScanResponse)
def get_scan(scan_id: int, db: Session = Depends(get_db)):
    record = HistoryService(db).get_scan(scan_id)
    if not record:
        raise HTTPException(status_code=404, detail="Scan not found")
    return record

@router.delete("/scans/{scan_id}")
def delete_scan(scan_id: int, db: Session = Depends(get_db)):
    if not HistoryService(db).delete_scan(scan_id):
        raise HTTPException(status_code=404, detail="Scan not found")
    return {"status": "success", "message": f"Scan {scan_id} deleted"}

@router.get("/statistics", response_model=dict)
def get_statistics(db: Session = Depends(get_db)):
    return HistoryService(db).statistics()

@router.get("/health")
def health_check(service: AnalysisService = Depends(get_analysis_service)):
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "blacklist_entries": len(service.blacklist),
        "sources": [service.primary.name, service.secondary.name, service.domain_age.name],
    }
