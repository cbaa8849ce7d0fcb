# WORKFLOW: Pydantic request schemas and per-ledger update commands.
# Used by: FastAPI endpoints for request validation, compliance engine, trackers
# Schemas include:
# 1. InitializeComplianceRequest - For POST /compliance
# 2. CompleteChecklistItem / UpdateCertification / SubmitTestResult /
#    ScheduleTest / ApproveDocument - Tagged per-ledger update commands
# 3. ComplianceUpdateRequest - For POST /compliance/{id}/updates
# 4. RecordSpendRequest - For POST /compliance/{id}/spend
#
# Validation flow: HTTP request -> Pydantic validation -> Engine command -> Tracker
# Each command carries only the fields its ledger needs, so invalid combinations
# are rejected before reaching the engine.

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from api.schemas.compliance import (
    BatchDescriptor,
    CertificationStatus,
    ChecklistStatus,
    CostCategory,
    DocumentStatus,
    ExportRequirements,
    TestingStatus,
    VerificationStatus,
)


class InitializeComplianceRequest(BaseModel):
    """Request schema for creating a compliance record."""
    batch: BatchDescriptor
    destination_country: str = Field(..., min_length=2, max_length=3, description="Destination country code")
    buyer_id: str = Field(..., min_length=1, description="Buyer identifier")
    export_requirements: ExportRequirements = Field(default_factory=ExportRequirements)

    @field_validator("destination_country")
    @classmethod
    def normalize_country(cls, v: str) -> str:
        return v.strip().upper()


class CompleteChecklistItem(BaseModel):
    """Move a checklist item forward; defaults to marking it completed."""
    kind: Literal["checklist"] = "checklist"
    item_id: str
    status: ChecklistStatus = ChecklistStatus.COMPLETED
    notes: Optional[str] = None
    verified_by: Optional[str] = None
    actual_effort_hours: Optional[float] = Field(None, ge=0)
    documents_attached: List[str] = Field(default_factory=list)


class UpdateCertification(BaseModel):
    kind: Literal["certification"] = "certification"
    certification_id: str
    status: CertificationStatus
    certificate_number: Optional[str] = None
    issue_date: Optional[datetime] = None
    actual_cost: Optional[float] = Field(None, ge=0, description="Fee paid with this update")


class TestResultInput(BaseModel):
    """Lab result for one parameter; compliance is computed, never supplied."""
    parameter: str
    result_value: float
    unit: Optional[str] = None
    uncertainty: float = Field(0.0, ge=0)
    test_date: Optional[datetime] = None


class SubmitTestResult(BaseModel):
    kind: Literal["test_result"] = "test_result"
    test_id: str
    result: TestResultInput
    actual_cost: Optional[float] = Field(None, ge=0)


class ScheduleTest(BaseModel):
    kind: Literal["test_schedule"] = "test_schedule"
    test_id: str
    status: TestingStatus = TestingStatus.SCHEDULED
    lab_id: Optional[str] = None
    sample_id: Optional[str] = None
    test_date: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def only_pre_result_states(cls, v: TestingStatus) -> TestingStatus:
        if v in (TestingStatus.COMPLETED, TestingStatus.FAILED, TestingStatus.NOT_SCHEDULED):
            raise ValueError("completed/failed are derived from submitted results")
        return v


class ApproveDocument(BaseModel):
    """Move a document through review; defaults to approving it."""
    kind: Literal["document"] = "document"
    document_id: str
    status: DocumentStatus = DocumentStatus.APPROVED
    verification_status: Optional[VerificationStatus] = None
    verified_by: Optional[str] = None
    document_url: Optional[str] = None
    actual_cost: Optional[float] = Field(None, ge=0)


class ComplianceUpdateRequest(BaseModel):
    """Request schema for applying a batch of ledger updates atomically."""
    checklist_updates: List[CompleteChecklistItem] = Field(default_factory=list)
    test_results: List[SubmitTestResult] = Field(default_factory=list)
    document_approvals: List[ApproveDocument] = Field(default_factory=list)
    certification_updates: List[UpdateCertification] = Field(default_factory=list)
    test_schedules: List[ScheduleTest] = Field(default_factory=list)


class RecordSpendRequest(BaseModel):
    category: CostCategory
    amount: float = Field(..., ge=0)
    description: str = Field(..., min_length=1)
    reference: Optional[str] = None
    milestone_id: Optional[str] = None
