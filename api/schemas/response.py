# WORKFLOW: Pydantic response schemas for reports and readiness decisions.
# Used by: Report generator, readiness validator, API responses, schema gate
# Schemas include:
# 1. ComplianceReport - Executive summary, ledger progress, risk/cost/timeline summaries
# 2. ReadinessResult - Point-based gate outcome with issues and required actions
# 3. ExportAuthorization - Advisory authorization data issued on a passing gate
# 4. RecordSummary - Lightweight listing entry
#
# Response flow: ComplianceRecord -> Report/Readiness services -> Pydantic model ->
# JSON Schema validation -> API response. Nothing here is stored on the record.

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from api.schemas.compliance import ComplianceStatus, RiskLevel, RiskTrend


class LedgerProgress(BaseModel):
    completed: int
    total: int
    ratio: float = Field(..., ge=0.0, le=1.0)

    @property
    def label(self) -> str:
        return f"{self.completed}/{self.total}"


class ExecutiveSummary(BaseModel):
    compliance_id: str
    batch_id: str
    destination_country: str
    buyer_id: str
    overall_status: ComplianceStatus
    effective_status: Union[ComplianceStatus, Literal["void"]]
    compliance_score: int
    completion_percentage: int
    estimated_completion_date: Optional[datetime] = None
    expires_at: datetime
    expired: bool


class DetailedStatus(BaseModel):
    checklist: LedgerProgress
    certifications: LedgerProgress
    testing: LedgerProgress
    documentation: LedgerProgress


class RiskSummary(BaseModel):
    overall_risk_level: RiskLevel
    highest_risk_score: float
    active_risks: int
    mitigation_strategies_implemented: int
    risk_trend: RiskTrend
    next_assessment_date: datetime


class CostSummary(BaseModel):
    total_budget: float
    actual_spend: float
    budget_variance: float
    remaining_budget: float


class TimelineSummary(BaseModel):
    current_phase: str
    overall_completion: float
    schedule_risk: RiskLevel
    active_delays: int
    critical_path: List[str]
    total_duration_days: int


class ComplianceReport(BaseModel):
    generated_at: datetime
    executive_summary: ExecutiveSummary
    detailed_status: DetailedStatus
    risk_analysis: RiskSummary
    cost_analysis: CostSummary
    timeline_status: TimelineSummary
    recommendations: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)


class ExportAuthorization(BaseModel):
    """Advisory output data; carries no cryptographic guarantee."""
    authorization_number: str
    issued_date: datetime
    valid_until: datetime
    compliance_id: str
    destination_country: str
    batch_id: str
    buyer_id: str
    authorized_by: str = "Export Compliance System"
    conditions: List[str] = Field(default_factory=list)


class ReadinessResult(BaseModel):
    compliance_id: str
    ready: bool
    score: int = Field(..., ge=0, le=100)
    critical_issues: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    required_actions: List[str] = Field(default_factory=list)
    authorization: Optional[ExportAuthorization] = None
    evaluated_at: datetime


class RecordSummary(BaseModel):
    compliance_id: str
    batch_id: str
    destination_country: str
    buyer_id: str
    compliance_status: ComplianceStatus
    compliance_score: int
    expires_at: datetime
    expired: bool
