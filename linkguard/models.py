from sqlalchemy import Column, Integer, String, DateTime, JSON, Float, Text, Boolean
from datetime import datetime
from linkguard.database import Base

class ScanRecord(Base):
    __tablename__ = "scans"

    id = Column(Integer, primary_key=True, index=True)

    # Input and expansion
    original_url = Column(Text, nullable=False)
    resolved_url = Column(Text, nullable=True)
    analyzed_url = Column(Text)
    domain = Column(String(255), index=True, nullable=True)
    was_expanded = Column(Boolean, default=False)

    # Verdict
    verdict = Column(String(50), index=True)
    risk_score = Column(Integer, default=0)
    breakdown = Column(JSON, default=list)

    # Heuristic flags
    blacklisted = Column(Boolean, default=False)
    typosquatting = Column(Boolean, default=False)
    https = Column(Boolean, default=False)
    ip_based = Column(Boolean, default=False)

    # Normalized signal source results
    sources = Column(JSON, default=list)

    processing_time = Column(Float)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
