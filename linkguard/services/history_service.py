import logging
from typing import Dict, List, Optional

from sqlalchemy import func, desc
from sqlalchemy.orm import Session

from linkguard.core.verdict import Verdict, VerdictReport
from linkguard.models import ScanRecord

logger = logging.getLogger(__name__)


class HistoryService:
    """Persistence of finished analyses"""

    def __init__(self, db: Session):
        self.db = db

    def save(self, report: VerdictReport, processing_time: float = 0.0) -> ScanRecord:
        record = ScanRecord(
            original_url=report.original_url,
            resolved_url=report.resolved_url,
            analyzed_url=report.analyzed_url or report.original_url,
            domain=report.domain,
            was_expanded=report.resolved_url is not None,
            verdict=report.verdict.value,
            risk_score=report.score,
            breakdown=list(report.breakdown),
            blacklisted=report.blacklisted,
            typosquatting=report.typosquatting,
            https=report.https,
            ip_based=report.ip_based,
            sources=[s.to_dict() for s in report.sources],
            processing_time=round(processing_time, 3),
        )
        try:
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save scan for {report.original_url}: {e}")
            raise
        logger.info(f"✓ Saved scan #{record.id}: {record.verdict} ({record.risk_score})")
        return record

    def list_scans(self, skip: int = 0, limit: int = 50, verdict: Optional[str] = None) -> List[ScanRecord]:
        query = self.db.query(ScanRecord)
        if verdict:
            query = query.filter(ScanRecord.verdict == verdict.upper())
        return query.order_by(desc(ScanRecord.created_at), desc(ScanRecord.id)).offset(skip).limit(limit).all()

    def get_scan(self, scan_id: int) -> Optional[ScanRecord]:
        return self.db.query(ScanRecord).filter(ScanRecord.id == scan_id).first()

    def delete_scan(self, scan_id: int) -> bool:
        record = self.get_scan(scan_id)
        if not record:
            return False
        self.db.delete(record)
        self.db.commit()
        return True

    def statistics(self) -> Dict:
        total = self.db.query(func.count(ScanRecord.id)).scalar() or 0
        counts = dict(
            self.db.query(ScanRecord.verdict, func.count(ScanRecord.id))
            .group_by(ScanRecord.verdict)
            .all()
        )
        avg_score = self.db.query(func.avg(ScanRecord.risk_score)).scalar() or 0
        avg_time = self.db.query(func.avg(ScanRecord.processing_time)).scalar() or 0
        expanded = self.db.query(func.count(ScanRecord.id)).filter(ScanRecord.was_expanded.is_(True)).scalar() or 0

        recent = self.list_scans(limit=10)

        return {
            "total_scans": total,
            "by_verdict": {v.value: counts.get(v.value, 0) for v in Verdict},
            "expanded_links": expanded,
            "avg_risk_score": round(float(avg_score), 2),
            "avg_processing_time": round(float(avg_time), 3),
            "recent_scans": [record_summary(r) for r in recent],
        }


def record_summary(record: ScanRecord) -> Dict:
    return {
        "id": record.id,
        "original_url": record.original_url,
        "domain": record.domain,
        "verdict": record.verdict,
        "risk_score": record.risk_score,
        "created_at": record.created_at,
    }
