# WORKFLOW: Compliance record endpoints over the compliance engine.
# Used by: UI and collaborator systems (batch intake, lab portals, document desks)
# Endpoints:
# 1. POST /compliance - Initialize a record for a batch, destination and buyer
# 2. GET /compliance, GET /compliance/{id} - List and read records
# 3. POST /compliance/{id}/updates - Apply per-ledger update commands atomically
# 4. POST /compliance/{id}/recompute, /spend, /risk-assessment - Targeted mutations
# 5. GET /compliance/{id}/report, /readiness - Derived outputs (schema-validated)
#
# Request flow: HTTP -> Pydantic validation -> ComplianceEngine -> (schema gate) -> Response
# Engine errors map to HTTP: not found 404, unknown item 404, invalid transition 409,
# live duplicate 409, catalog data unavailable 422.

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
import jsonschema
import logging

from api.schemas.compliance import ComplianceRecord, CostEntry, RiskAssessment
from api.schemas.request import ComplianceUpdateRequest, InitializeComplianceRequest, RecordSpendRequest
from api.schemas.response import ComplianceReport, ReadinessResult, RecordSummary
from api.schemas.validation import validate_readiness, validate_report
from core.exceptions import (
    CatalogDataUnavailableError,
    ComplianceError,
    InvalidTransitionError,
    RecordAlreadyExistsError,
    RecordNotFoundError,
    UnknownItemError,
)
from services.compliance_engine import ComplianceEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/compliance", tags=["compliance"])

_STATUS_BY_ERROR = {
    RecordNotFoundError: status.HTTP_404_NOT_FOUND,
    UnknownItemError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    RecordAlreadyExistsError: status.HTTP_409_CONFLICT,
    CatalogDataUnavailableError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def get_compliance_engine(request: Request) -> ComplianceEngine:
    """Dependency returning the engine constructed at app startup."""
    return request.app.state.compliance_engine


def _to_http(error: ComplianceError) -> HTTPException:
    code = _STATUS_BY_ERROR.get(type(error), status.HTTP_400_BAD_REQUEST)
    logger.warning(f"{type(error).__name__}: {error}")
    return HTTPException(status_code=code, detail=str(error))


@router.post("", response_model=ComplianceRecord, status_code=status.HTTP_201_CREATED)
def initialize_compliance(
    request: InitializeComplianceRequest,
    engine: ComplianceEngine = Depends(get_compliance_engine),
):
    """
    Initialize a compliance record.

    Builds regulations, certifications, tests, documents, checklist, risk, timeline and
    cost for the batch. Fails as a whole when the catalog has no data for the market.
    """
    logger.info(
        f"Initialize request: batch={request.batch.batch_id}, dest={request.destination_country}, "
        f"buyer={request.buyer_id}"
    )
    try:
        return engine.initialize(
            request.batch,
            request.destination_country,
            request.buyer_id,
            request.export_requirements,
        )
    except ComplianceError as e:
        raise _to_http(e)


@router.get("", response_model=List[RecordSummary])
def list_compliance_records(engine: ComplianceEngine = Depends(get_compliance_engine)):
    now = engine.clock()
    return [
        RecordSummary(
            compliance_id=record.compliance_id,
            batch_id=record.batch_id,
            destination_country=record.destination_country,
            buyer_id=record.buyer_id,
            compliance_status=record.compliance_status,
            compliance_score=record.compliance_score,
            expires_at=record.expires_at,
            expired=record.is_expired(now),
        )
        for record in engine.list_records()
    ]


@router.get("/{record_id}", response_model=ComplianceRecord)
def get_compliance_record(record_id: str, engine: ComplianceEngine = Depends(get_compliance_engine)):
    try:
        return engine.get_record(record_id)
    except ComplianceError as e:
        raise _to_http(e)


@router.post("/{record_id}/updates", response_model=ComplianceRecord)
def apply_compliance_updates(
    record_id: str,
    request: ComplianceUpdateRequest,
    engine: ComplianceEngine = Depends(get_compliance_engine),
):
    """
    Apply ledger updates atomically.

    Either every command in the request is applied and the score recomputed, or the
    record is left unchanged and the first failing command is reported.
    """
    try:
        return engine.apply_update(
            record_id,
            checklist_updates=request.checklist_updates,
            test_results=request.test_results,
            document_approvals=request.document_approvals,
            certification_updates=request.certification_updates,
            test_schedules=request.test_schedules,
        )
    except ComplianceError as e:
        raise _to_http(e)


@router.post("/{record_id}/recompute", response_model=ComplianceRecord)
def recompute_compliance_score(record_id: str, engine: ComplianceEngine = Depends(get_compliance_engine)):
    try:
        return engine.recompute_score(record_id)
    except ComplianceError as e:
        raise _to_http(e)


@router.post("/{record_id}/spend", response_model=CostEntry, status_code=status.HTTP_201_CREATED)
def record_compliance_spend(
    record_id: str,
    request: RecordSpendRequest,
    engine: ComplianceEngine = Depends(get_compliance_engine),
):
    try:
        return engine.record_spend(
            record_id,
            request.category,
            request.amount,
            request.description,
            reference=request.reference,
            milestone_id=request.milestone_id,
        )
    except ComplianceError as e:
        raise _to_http(e)


@router.post("/{record_id}/risk-assessment", response_model=RiskAssessment)
def reassess_compliance_risk(record_id: str, engine: ComplianceEngine = Depends(get_compliance_engine)):
    try:
        return engine.reassess_risk(record_id)
    except ComplianceError as e:
        raise _to_http(e)


@router.get("/{record_id}/report", response_model=ComplianceReport)
def get_compliance_report(record_id: str, engine: ComplianceEngine = Depends(get_compliance_engine)):
    """Generate the compliance report. Expired records report effective_status 'void'."""
    try:
        report = engine.generate_report(record_id)
        validate_report(report)
        return report
    except ComplianceError as e:
        raise _to_http(e)
    except jsonschema.ValidationError as e:
        logger.error(f"Report failed schema validation: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Report failed schema validation: {e.message}",
        )


@router.get("/{record_id}/readiness", response_model=ReadinessResult)
def get_export_readiness(record_id: str, engine: ComplianceEngine = Depends(get_compliance_engine)):
    """Run the export readiness gate. A passing gate carries an advisory authorization."""
    try:
        result = engine.validate_export_readiness(record_id)
        validate_readiness(result)
        return result
    except ComplianceError as e:
        raise _to_http(e)
    except jsonschema.ValidationError as e:
        logger.error(f"Readiness result failed schema validation: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Readiness result failed schema validation: {e.message}",
        )
