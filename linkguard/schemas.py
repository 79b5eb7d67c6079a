from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

# ==========================================
# 🧱 SHARED MODELS
# ==========================================

class SignalResultSchema(BaseModel):
    source: str
    score: Optional[float] = None
    error: bool = False
    message: Optional[str] = None
    details: Dict[str, Any] = {}

class ExpansionAttemptSchema(BaseModel):
    method: str
    result_url: Optional[str] = None
    error: Optional[str] = None
    elapsed: float = 0.0

# ==========================================
# 📥 INPUT MODELS
# ==========================================

class CheckRequest(BaseModel):
    url: str
    timeout: Optional[float] = Field(None, gt=0)

class BatchCheckRequest(BaseModel):
    urls: List[str] = []
    timeout: Optional[float] = Field(None, gt=0)

class ExpandRequest(BaseModel):
    url: str

# ==========================================
# 📤 RESPONSE MODELS
# ==========================================

class ReportResponse(BaseModel):
    url: str
    original_url: str
    resolved_url: Optional[str] = None
    domain: Optional[str] = None
    score: int
    verdict: str
    breakdown: List[str] = []
    sources: List[SignalResultSchema] = []
    blacklisted: bool = False
    typosquatting: bool = False
    https: bool = False
    ip_based: bool = False

class CheckMetadata(BaseModel):
    checked_at: datetime
    processing_time: float
    api_version: str

class CheckResponse(BaseModel):
    success: bool = True
    data: ReportResponse
    was_expanded: bool = False
    expanded_url: Optional[str] = None
    original_input: str
    scan_id: Optional[int] = None
    metadata: CheckMetadata

class BatchItemResponse(BaseModel):
    success: bool
    url: str
    data: Optional[ReportResponse] = None
    error: Optional[str] = None

class BatchCheckResponse(BaseModel):
    success: bool = True
    total: int
    succeeded: int
    failed: int
    results: List[BatchItemResponse]
    processing_time: float

class ExpandResponse(BaseModel):
    success: bool = True
    original_url: str
    expanded_url: str
    is_expanded: bool
    method_used: Optional[str] = None
    attempts: List[ExpansionAttemptSchema] = []
    processing_time: float

class ScanResponse(BaseModel):
    """Stored scan, used by /scans and /scans/{id}"""
    id: int
    original_url: str
    resolved_url: Optional[str] = None
    analyzed_url: Optional[str] = None
    domain: Optional[str] = None
    was_expanded: bool = False
    verdict: str
    risk_score: int
    breakdown: List[str] = []
    blacklisted: bool = False
    typosquatting: bool = False
    https: bool = False
    ip_based: bool = False
    sources: List[Dict[str, Any]] = []
    processing_time: Optional[float] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
