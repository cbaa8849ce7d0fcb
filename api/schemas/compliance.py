# WORKFLOW: Pydantic domain models for export compliance records.
# Used by: Catalog, record builder, trackers, scorer, readiness validator, stores, API
# Models include:
# 1. Closed enums for every status, enforcement level, risk level and category
# 2. Catalog entities - Regulation, RegulationRequirement, AccreditedLab
# 3. Sub-ledger entities - Certification, Testing, Documentation, Checklist items
# 4. RiskAssessment, ComplianceTimeline, ComplianceCostBreakdown aggregates
# 5. ComplianceRecord - the root entity, unit of update atomicity
#
# Record flow: Catalog data + batch context -> Builder -> ComplianceRecord -> Store
# Regulations are frozen once attached; only their satisfaction is tracked.

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, computed_field


class ComplianceStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    CONDITIONAL = "conditional"


class RegulationType(str, Enum):
    FOOD_SAFETY = "food_safety"
    QUALITY = "quality"
    PHYTOSANITARY = "phytosanitary"
    ORGANIC = "organic"
    LABELING = "labeling"
    PACKAGING = "packaging"
    TRANSPORT = "transport"


class EnforcementLevel(str, Enum):
    ADVISORY = "advisory"
    MANDATORY = "mandatory"
    CRITICAL = "critical"


class CertificationStatus(str, Enum):
    NOT_STARTED = "not_started"
    APPLIED = "applied"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class TestType(str, Enum):
    CHEMICAL_RESIDUE = "chemical_residue"
    MICROBIOLOGICAL = "microbiological"
    NUTRITIONAL = "nutritional"
    CONTAMINANT = "contaminant"
    QUALITY = "quality"
    AUTHENTICITY = "authenticity"


class TestingStatus(str, Enum):
    NOT_SCHEDULED = "not_scheduled"
    SCHEDULED = "scheduled"
    SAMPLING = "sampling"
    TESTING = "testing"
    COMPLETED = "completed"
    FAILED = "failed"


class DocumentStatus(str, Enum):
    NOT_STARTED = "not_started"
    DRAFT = "draft"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUBMITTED = "submitted"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ChecklistStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    VERIFIED = "verified"
    FAILED = "failed"


class ChecklistCategory(str, Enum):
    REGULATORY = "regulatory_compliance"
    CERTIFICATION = "certification"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskFactorType(str, Enum):
    REGULATORY = "regulatory"
    OPERATIONAL = "operational"
    MARKET = "market"
    TECHNICAL = "technical"
    FINANCIAL = "financial"


class RiskTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"


class MitigationStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    IMPLEMENTED = "implemented"
    REVIEWED = "reviewed"


class MilestoneStatus(str, Enum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"
    AT_RISK = "at_risk"


class MilestoneLedger(str, Enum):
    NONE = "none"
    CHECKLIST = "checklist"
    CERTIFICATIONS = "certifications"
    TESTING = "testing"
    DOCUMENTATION = "documentation"


class CostCategory(str, Enum):
    CERTIFICATION_FEES = "certification_fees"
    TESTING_COSTS = "testing_costs"
    DOCUMENTATION_COSTS = "documentation_costs"
    INSPECTION_FEES = "inspection_fees"
    CONSULTANT_FEES = "consultant_fees"
    TRAINING_COSTS = "training_costs"
    SYSTEM_UPGRADES = "system_upgrades"
    CONTINGENCY_RESERVE = "contingency_reserve"
    OTHER_COSTS = "other_costs"


# ---------------------------------------------------------------------------
# Batch context (supplied by collaborator systems)
# ---------------------------------------------------------------------------


class BatchDescriptor(BaseModel):
    batch_id: str = Field(..., min_length=1)
    crop_type: str = Field(..., min_length=1)
    organic_certified: bool = False
    origin_country: Optional[str] = Field(None, min_length=2, max_length=3)
    farm_id: Optional[str] = None
    quantity_kg: Optional[float] = Field(None, ge=0)
    harvest_date: Optional[date] = None
    previous_rejections: int = Field(0, ge=0)


class ExportRequirements(BaseModel):
    """Buyer-specific overrides layered on top of the market catalog."""
    additional_certifications: List[str] = Field(default_factory=list)
    additional_documents: List[str] = Field(default_factory=list)
    additional_tests: List[str] = Field(default_factory=list)
    target_ship_date: Optional[date] = None
    notes: Optional[str] = None


# ---------------------------------------------------------------------------
# Catalog entities
# ---------------------------------------------------------------------------


class RegulationRequirement(BaseModel):
    requirement_id: str
    requirement_type: str
    description: str
    acceptance_criteria: str
    testing_method: Optional[str] = None
    documentation_needed: List[str] = Field(default_factory=list)
    grace_period_days: Optional[int] = None
    enforcement_level: EnforcementLevel

    class Config:
        frozen = True


class Regulation(BaseModel):
    regulation_id: str
    regulation_name: str
    regulatory_body: str
    country_code: str
    regulation_type: RegulationType
    mandatory: bool
    description: str
    requirements: List[RegulationRequirement] = Field(default_factory=list)
    penalties_for_non_compliance: List[str] = Field(default_factory=list)
    effective_date: date
    expiry_date: Optional[date] = None
    crop_types: List[str] = Field(default_factory=list)  # empty = every crop
    organic_only: bool = False
    certification_ids: List[str] = Field(default_factory=list)
    document_ids: List[str] = Field(default_factory=list)
    test_ids: List[str] = Field(default_factory=list)

    class Config:
        frozen = True


class ContactInfo(BaseModel):
    email: str
    phone: str
    address: str
    contact_person: str
    business_hours: str


class AccreditedLab(BaseModel):
    lab_id: str
    lab_name: str
    accreditation_body: str
    accreditation_number: str
    location: str
    specializations: List[str] = Field(default_factory=list)
    contact_info: Optional[ContactInfo] = None
    turnaround_times: Dict[TestType, int] = Field(default_factory=dict)
    cost_structure: Dict[TestType, float] = Field(default_factory=dict)
    quality_rating: float = Field(0.0, ge=0.0, le=5.0)


# ---------------------------------------------------------------------------
# Sub-ledger entities
# ---------------------------------------------------------------------------


class CertificationRequirement(BaseModel):
    certification_id: str
    certification_name: str
    issuing_authority: str
    validity_period_months: int = Field(..., gt=0)
    renewal_requirements: List[str] = Field(default_factory=list)
    cost_estimate: float = Field(0.0, ge=0)
    processing_time_days: int = Field(0, ge=0)
    prerequisites: List[str] = Field(default_factory=list)
    documentation_required: List[str] = Field(default_factory=list)
    inspection_required: bool = False
    annual_audit_required: bool = False
    chain_of_custody_required: bool = False
    mandatory: bool = True
    status: CertificationStatus = CertificationStatus.NOT_STARTED
    certificate_number: Optional[str] = None
    issue_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    renewal_date: Optional[datetime] = None


class SamplingRequirement(BaseModel):
    sample_size_kg: float
    sampling_method: str
    sampling_frequency: str
    sampling_locations: List[str] = Field(default_factory=list)
    sample_preservation: str
    chain_of_custody_required: bool = True
    sampling_certification_required: bool = False


class TestingParameter(BaseModel):
    parameter_name: str
    parameter_code: str
    unit: str
    detection_limit: float
    quantification_limit: float
    regulatory_limit: float
    test_method: str
    reference_standard: str
    critical_parameter: bool = False


class TestResult(BaseModel):
    parameter: str
    result_value: float
    unit: str
    regulatory_limit: float
    compliant: bool
    uncertainty: float = 0.0
    detection_limit: Optional[float] = None
    test_method: Optional[str] = None
    test_date: datetime
    retest_required: bool = False


class TestingRequirement(BaseModel):
    test_id: str
    test_name: str
    test_type: TestType
    required_by: List[str] = Field(default_factory=list)
    accredited_labs: List[AccreditedLab] = Field(default_factory=list)
    sampling_requirements: SamplingRequirement
    testing_parameters: List[TestingParameter] = Field(..., min_length=1)
    acceptance_criteria: str = "All parameters below regulatory limits"
    cost_estimate: float = Field(0.0, ge=0)
    turnaround_time_days: int = Field(0, ge=0)
    result_validity_days: int = 90
    status: TestingStatus = TestingStatus.NOT_SCHEDULED
    sample_id: Optional[str] = None
    lab_id: Optional[str] = None
    test_date: Optional[datetime] = None
    results: List[TestResult] = Field(default_factory=list)
    compliance_met: bool = False


class DocumentationRequirement(BaseModel):
    document_id: str
    document_type: str
    document_name: str
    required_by: List[str] = Field(default_factory=list)
    template_available: bool = False
    auto_generated: bool = False
    requires_third_party_verification: bool = False
    validity_period_days: Optional[int] = None
    preparation_days: int = 14
    cost_estimate: float = Field(0.0, ge=0)
    language_requirements: List[str] = Field(default_factory=list)
    format_requirements: List[str] = Field(default_factory=list)
    submission_deadline: datetime
    status: DocumentStatus = DocumentStatus.NOT_STARTED
    document_url: Optional[str] = None
    verification_status: Optional[VerificationStatus] = None
    verified_by: Optional[str] = None


class ComplianceChecklistItem(BaseModel):
    item_id: str
    category: ChecklistCategory
    description: str
    mandatory: bool
    completion_status: ChecklistStatus = ChecklistStatus.NOT_STARTED
    assigned_to: str
    due_date: datetime
    completion_date: Optional[datetime] = None
    verification_required: bool = True
    verification_by: Optional[str] = None
    verification_date: Optional[datetime] = None
    notes: str = ""
    documents_attached: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    estimated_effort_hours: float = 0.0
    actual_effort_hours: Optional[float] = None
    regulation_id: Optional[str] = None
    requirement_id: Optional[str] = None
    certification_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Risk
# ---------------------------------------------------------------------------


class RiskFactor(BaseModel):
    factor_id: str
    factor_type: RiskFactorType
    description: str
    probability: float = Field(..., ge=0.0, le=1.0)
    impact_severity: float = Field(..., ge=0.0, le=5.0)
    risk_score: float
    current_controls: List[str] = Field(default_factory=list)
    residual_risk: float = 0.0
    owner: str = "Compliance Manager"
    review_frequency: str = "Monthly"


class MitigationStrategy(BaseModel):
    strategy_id: str
    risk_factor_id: str
    strategy_description: str
    implementation_cost: float = 0.0
    implementation_timeline: str
    effectiveness_rating: float = Field(0.0, ge=0.0, le=1.0)
    resource_requirements: List[str] = Field(default_factory=list)
    success_metrics: List[str] = Field(default_factory=list)
    status: MitigationStatus = MitigationStatus.PLANNED


class ContingencyPlan(BaseModel):
    plan_id: str
    scenario_description: str
    trigger_conditions: List[str] = Field(default_factory=list)
    immediate_actions: List[str] = Field(default_factory=list)
    alternative_markets: List[str] = Field(default_factory=list)
    financial_impact: float = 0.0


class RiskAssessment(BaseModel):
    overall_risk_level: RiskLevel
    risk_factors: List[RiskFactor] = Field(default_factory=list)
    mitigation_strategies: List[MitigationStrategy] = Field(default_factory=list)
    contingency_plans: List[ContingencyPlan] = Field(default_factory=list)
    risk_monitoring_plan: List[str] = Field(default_factory=list)
    last_assessment_date: datetime
    next_assessment_date: datetime
    risk_trend: RiskTrend = RiskTrend.STABLE

    @property
    def highest_risk_score(self) -> float:
        return max((f.risk_score for f in self.risk_factors), default=0.0)


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------


class ComplianceMilestone(BaseModel):
    milestone_id: str
    milestone_name: str
    description: str
    ledger: MilestoneLedger = MilestoneLedger.NONE
    planned_duration_days: int = Field(0, ge=0)
    planned_date: datetime
    actual_date: Optional[datetime] = None
    status: MilestoneStatus = MilestoneStatus.UPCOMING
    progress_percentage: float = 0.0
    dependencies: List[str] = Field(default_factory=list)
    deliverables: List[str] = Field(default_factory=list)
    success_criteria: List[str] = Field(default_factory=list)
    responsible_party: str
    critical: bool = False


class ComplianceDelay(BaseModel):
    delay_id: str
    affected_milestone: str
    delay_reason: str
    delay_duration_days: int
    impact_assessment: str
    mitigation_actions: List[str] = Field(default_factory=list)
    responsible_party: str
    detected_at: datetime
    resolution_date: Optional[datetime] = None


class ComplianceTimeline(BaseModel):
    milestones: List[ComplianceMilestone] = Field(default_factory=list)
    critical_path: List[str] = Field(default_factory=list)
    total_duration_days: int = 0
    current_phase: str = ""
    overall_completion_percentage: float = 0.0
    delays: List[ComplianceDelay] = Field(default_factory=list)
    schedule_risk: RiskLevel = RiskLevel.LOW
    contingency_time_buffer_days: int = 0


# ---------------------------------------------------------------------------
# Cost
# ---------------------------------------------------------------------------


class CostEntry(BaseModel):
    entry_id: str
    category: CostCategory
    amount: float = Field(..., ge=0)
    description: str
    reference: Optional[str] = None
    milestone_id: Optional[str] = None
    recorded_at: datetime


class ComplianceCostBreakdown(BaseModel):
    total_estimated_cost: float
    total_actual_cost: float = 0.0
    cost_categories: Dict[CostCategory, float]
    actual_cost_categories: Dict[CostCategory, float] = Field(default_factory=dict)
    cost_by_milestone: Dict[str, float] = Field(default_factory=dict)
    actual_cost_by_milestone: Dict[str, float] = Field(default_factory=dict)
    spend_entries: List[CostEntry] = Field(default_factory=list)
    budget_variance: float = 0.0


# ---------------------------------------------------------------------------
# Root entity
# ---------------------------------------------------------------------------


class ScoreBreakdown(BaseModel):
    checklist: float = 0.0
    certifications: float = 0.0
    testing: float = 0.0
    documentation: float = 0.0
    empty_ledgers: List[str] = Field(default_factory=list)


class ComplianceRecord(BaseModel):
    compliance_id: str
    batch: BatchDescriptor
    destination_country: str
    buyer_id: str
    export_requirements: ExportRequirements = Field(default_factory=ExportRequirements)
    export_regulations: List[Regulation] = Field(default_factory=list)
    certification_requirements: List[CertificationRequirement] = Field(default_factory=list)
    documentation_requirements: List[DocumentationRequirement] = Field(default_factory=list)
    testing_requirements: List[TestingRequirement] = Field(default_factory=list)
    compliance_checklist: List[ComplianceChecklistItem] = Field(default_factory=list)
    compliance_status: ComplianceStatus = ComplianceStatus.PENDING
    compliance_score: int = Field(0, ge=0, le=100)
    score_breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    risk_assessment: RiskAssessment
    compliance_timeline: ComplianceTimeline
    cost_breakdown: ComplianceCostBreakdown
    assigned_inspector: str = "TBD"
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    @computed_field
    @property
    def batch_id(self) -> str:
        return self.batch.batch_id

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
