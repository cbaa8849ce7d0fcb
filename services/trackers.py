# WORKFLOW: Per-ledger trackers applying update commands to a compliance record.
# Used by: Compliance engine (apply_update), engine reads (lazy certificate expiry)
# Trackers:
# 1. ChecklistTracker - Forward-only checklist transitions, independent verifier check
# 2. CertificationTracker - Application/approval table, expiry by calendar months
# 3. TestingTracker - Scheduling, per-parameter results validated on insertion
# 4. DocumentationTracker - Review table, third-party verification gate on approval
#
# Update flow: command -> find item (UnknownItemError) -> check transition table
# (InvalidTransitionError) -> mutate item -> spend events for the cost ledger
# Item sets are fixed at build time: trackers never add or remove items.
# Re-applying the state an item is already in changes nothing and books no spend.

from calendar import monthrange
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Union
import logging

from api.schemas.compliance import (
    CertificationRequirement,
    CertificationStatus,
    ChecklistStatus,
    ComplianceChecklistItem,
    ComplianceRecord,
    CostCategory,
    DocumentationRequirement,
    DocumentStatus,
    TestingParameter,
    TestingRequirement,
    TestingStatus,
    TestResult,
    VerificationStatus,
)
from api.schemas.request import (
    ApproveDocument,
    CompleteChecklistItem,
    ScheduleTest,
    SubmitTestResult,
    UpdateCertification,
)
from core.exceptions import InvalidTransitionError, UnknownItemError
from services.cost_ledger import SpendEvent
from services.timeline import (
    CERTIFICATIONS_COMPLETE,
    DOCUMENTATION_COMPLETE,
    TESTING_COMPLETE,
)

logger = logging.getLogger(__name__)

UpdateCommand = Union[CompleteChecklistItem, UpdateCertification, SubmitTestResult, ScheduleTest, ApproveDocument]


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the end of the target month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _check_transition(
    table: Dict, ledger: str, item_id: str, current, target
) -> None:
    allowed: FrozenSet = table[current]
    if target not in allowed:
        raise InvalidTransitionError(
            f"{ledger} {item_id}: cannot move from {current.value} to {target.value}"
        )


# ---------------------------------------------------------------------------
# Checklist
# ---------------------------------------------------------------------------

CHECKLIST_TRANSITIONS = {
    ChecklistStatus.NOT_STARTED: frozenset({
        ChecklistStatus.IN_PROGRESS, ChecklistStatus.COMPLETED, ChecklistStatus.FAILED,
    }),
    ChecklistStatus.IN_PROGRESS: frozenset({ChecklistStatus.COMPLETED, ChecklistStatus.FAILED}),
    ChecklistStatus.COMPLETED: frozenset({ChecklistStatus.VERIFIED}),
    ChecklistStatus.VERIFIED: frozenset(),
    # A failed item is reworked as a new attempt
    ChecklistStatus.FAILED: frozenset({ChecklistStatus.IN_PROGRESS}),
}


class ChecklistTracker:
    ledger = "checklist"

    def _find(self, record: ComplianceRecord, item_id: str) -> ComplianceChecklistItem:
        for item in record.compliance_checklist:
            if item.item_id == item_id:
                return item
        raise UnknownItemError(self.ledger, item_id)

    def apply_update(
        self, record: ComplianceRecord, command: CompleteChecklistItem, now: datetime
    ) -> List[SpendEvent]:
        item = self._find(record, command.item_id)
        target = command.status
        if target == item.completion_status:
            return []

        _check_transition(CHECKLIST_TRANSITIONS, self.ledger, item.item_id, item.completion_status, target)

        if target == ChecklistStatus.VERIFIED:
            verifier = (command.verified_by or "").strip()
            if not verifier:
                raise InvalidTransitionError(f"checklist {item.item_id}: verification needs a verifier identity")
            if verifier.casefold() == item.assigned_to.strip().casefold():
                raise InvalidTransitionError(
                    f"checklist {item.item_id}: verifier must differ from assignee {item.assigned_to}"
                )
            item.verification_by = verifier
            item.verification_date = now
            item.completion_date = item.completion_date or now
        elif target == ChecklistStatus.COMPLETED:
            item.completion_date = now
        else:
            item.completion_date = None

        item.completion_status = target
        if command.notes:
            item.notes = f"{item.notes}\n{command.notes}".strip()
        if command.actual_effort_hours is not None:
            item.actual_effort_hours = command.actual_effort_hours
        for document in command.documents_attached:
            if document not in item.documents_attached:
                item.documents_attached.append(document)

        logger.info(f"Checklist item {item.item_id} -> {target.value}")
        return []


# ---------------------------------------------------------------------------
# Certification
# ---------------------------------------------------------------------------

CERTIFICATION_TRANSITIONS = {
    CertificationStatus.NOT_STARTED: frozenset({CertificationStatus.APPLIED, CertificationStatus.APPROVED}),
    CertificationStatus.APPLIED: frozenset({
        CertificationStatus.UNDER_REVIEW, CertificationStatus.APPROVED, CertificationStatus.REJECTED,
    }),
    CertificationStatus.UNDER_REVIEW: frozenset({CertificationStatus.APPROVED, CertificationStatus.REJECTED}),
    CertificationStatus.APPROVED: frozenset(),
    CertificationStatus.REJECTED: frozenset({CertificationStatus.APPLIED}),
    # Expiry is time-driven (see expire_lapsed_certifications); renewal starts a new application
    CertificationStatus.EXPIRED: frozenset({CertificationStatus.APPLIED}),
}


class CertificationTracker:
    ledger = "certification"

    def _find(self, record: ComplianceRecord, certification_id: str) -> CertificationRequirement:
        for certification in record.certification_requirements:
            if certification.certification_id == certification_id:
                return certification
        raise UnknownItemError(self.ledger, certification_id)

    def apply_update(
        self, record: ComplianceRecord, command: UpdateCertification, now: datetime
    ) -> List[SpendEvent]:
        certification = self._find(record, command.certification_id)
        target = command.status
        number = (command.certificate_number or "").strip() or None

        if target == certification.status:
            if target == CertificationStatus.APPROVED and number and number != certification.certificate_number:
                raise InvalidTransitionError(
                    f"certification {certification.certification_id} is already approved "
                    f"under {certification.certificate_number}"
                )
            return []

        _check_transition(
            CERTIFICATION_TRANSITIONS, self.ledger, certification.certification_id, certification.status, target
        )

        if target == CertificationStatus.APPROVED:
            if number is None:
                raise InvalidTransitionError(
                    f"certification {certification.certification_id}: approval requires a certificate number"
                )
            issue_date = command.issue_date or now
            expiry_date = add_months(issue_date, certification.validity_period_months)
            if expiry_date <= now:
                raise InvalidTransitionError(
                    f"certification {certification.certification_id}: certificate issued {issue_date.date()} "
                    f"already expired on {expiry_date.date()}"
                )
            certification.certificate_number = number
            certification.issue_date = issue_date
            certification.expiry_date = expiry_date
            certification.renewal_date = None
        elif target == CertificationStatus.APPLIED:
            certification.certificate_number = None
            certification.issue_date = None
            certification.expiry_date = None

        certification.status = target
        logger.info(f"Certification {certification.certification_id} -> {target.value}")

        if command.actual_cost:
            return [SpendEvent(
                category=CostCategory.CERTIFICATION_FEES,
                amount=command.actual_cost,
                description=f"{certification.certification_name} ({target.value})",
                reference=number,
                milestone_id=CERTIFICATIONS_COMPLETE,
            )]
        return []


def expire_lapsed_certifications(record: ComplianceRecord, now: datetime) -> List[str]:
    """
    Move approved certifications past their expiry date to expired.

    Args:
        record: Compliance record (modified in place)
        now: Evaluation time

    Returns:
        Ids of certifications that lapsed during this call
    """
    lapsed = []
    for certification in record.certification_requirements:
        if (
            certification.status == CertificationStatus.APPROVED
            and certification.expiry_date is not None
            and certification.expiry_date <= now
        ):
            certification.status = CertificationStatus.EXPIRED
            certification.certificate_number = None
            certification.issue_date = None
            certification.expiry_date = None
            certification.renewal_date = now
            lapsed.append(certification.certification_id)
            logger.warning(f"Certification {certification.certification_id} expired on record {record.compliance_id}")
    return lapsed


# ---------------------------------------------------------------------------
# Testing
# ---------------------------------------------------------------------------

_SCHEDULE_ORDER = {
    TestingStatus.NOT_SCHEDULED: 0,
    TestingStatus.SCHEDULED: 1,
    TestingStatus.SAMPLING: 2,
    TestingStatus.TESTING: 3,
}


class TestingTracker:
    ledger = "test"

    def _find(self, record: ComplianceRecord, test_id: str) -> TestingRequirement:
        for requirement in record.testing_requirements:
            if requirement.test_id == test_id:
                return requirement
        raise UnknownItemError(self.ledger, test_id)

    def _parameter(self, requirement: TestingRequirement, name: str) -> TestingParameter:
        key = name.strip().lower()
        for parameter in requirement.testing_parameters:
            if key in (parameter.parameter_name.lower(), parameter.parameter_code.lower()):
                return parameter
        raise UnknownItemError("test parameter", f"{requirement.test_id}/{name}")

    def schedule(self, record: ComplianceRecord, command: ScheduleTest, now: datetime) -> List[SpendEvent]:
        requirement = self._find(record, command.test_id)
        target = command.status

        if command.lab_id is not None and requirement.accredited_labs:
            if command.lab_id not in {lab.lab_id for lab in requirement.accredited_labs}:
                raise UnknownItemError("lab", command.lab_id)

        if target == requirement.status:
            changed = False
        elif requirement.status == TestingStatus.FAILED and target == TestingStatus.SCHEDULED:
            # Retest: previous results no longer describe the sample under test
            requirement.results = []
            requirement.compliance_met = False
            requirement.status = target
            changed = True
        elif requirement.status in _SCHEDULE_ORDER and _SCHEDULE_ORDER[target] > _SCHEDULE_ORDER[requirement.status]:
            requirement.status = target
            changed = True
        else:
            raise InvalidTransitionError(
                f"test {requirement.test_id}: cannot move from {requirement.status.value} to {target.value}"
            )

        if command.lab_id is not None:
            requirement.lab_id = command.lab_id
        if command.sample_id is not None:
            requirement.sample_id = command.sample_id
        if command.test_date is not None:
            requirement.test_date = command.test_date
        if changed:
            logger.info(f"Test {requirement.test_id} -> {target.value}")
        return []

    def submit_result(
        self, record: ComplianceRecord, command: SubmitTestResult, now: datetime
    ) -> List[SpendEvent]:
        """
        Validate a lab result against its parameter limit and resolve the test status.

        A critical parameter above its limit fails the test immediately even while
        other parameters are pending. Otherwise the test completes once every
        parameter has a result, failing if any of them is above its limit.
        """
        requirement = self._find(record, command.test_id)
        parameter = self._parameter(requirement, command.result.parameter)
        submitted = command.result

        if submitted.unit is not None and submitted.unit != parameter.unit:
            raise InvalidTransitionError(
                f"test {requirement.test_id}: {parameter.parameter_name} reported in {submitted.unit}, "
                f"expected {parameter.unit}"
            )

        existing = self._latest_result(requirement, parameter)
        if (
            existing is not None
            and existing.result_value == submitted.result_value
            and existing.uncertainty == submitted.uncertainty
            and (submitted.test_date is None or submitted.test_date == existing.test_date)
        ):
            return []

        compliant = submitted.result_value <= parameter.regulatory_limit
        result = TestResult(
            parameter=parameter.parameter_name,
            result_value=submitted.result_value,
            unit=parameter.unit,
            regulatory_limit=parameter.regulatory_limit,
            compliant=compliant,
            uncertainty=submitted.uncertainty,
            detection_limit=parameter.detection_limit,
            test_method=parameter.test_method,
            test_date=submitted.test_date or now,
            retest_required=not compliant,
        )
        requirement.results = [
            r for r in requirement.results if r.parameter != parameter.parameter_name
        ] + [result]
        if requirement.test_date is None:
            requirement.test_date = result.test_date

        self._resolve(requirement)
        if not compliant:
            logger.warning(
                f"Test {requirement.test_id}: {parameter.parameter_name} {submitted.result_value} "
                f"{parameter.unit} exceeds limit {parameter.regulatory_limit}"
            )

        if command.actual_cost:
            return [SpendEvent(
                category=CostCategory.TESTING_COSTS,
                amount=command.actual_cost,
                description=f"{requirement.test_name}: {parameter.parameter_name}",
                reference=requirement.sample_id,
                milestone_id=TESTING_COMPLETE,
            )]
        return []

    def _latest_result(self, requirement: TestingRequirement, parameter: TestingParameter) -> Optional[TestResult]:
        for result in requirement.results:
            if result.parameter == parameter.parameter_name:
                return result
        return None

    def _resolve(self, requirement: TestingRequirement) -> None:
        by_parameter = {r.parameter: r for r in requirement.results}
        critical_failure = any(
            not by_parameter[p.parameter_name].compliant
            for p in requirement.testing_parameters
            if p.critical_parameter and p.parameter_name in by_parameter
        )
        all_reported = all(p.parameter_name in by_parameter for p in requirement.testing_parameters)
        all_compliant = all_reported and all(r.compliant for r in by_parameter.values())

        if critical_failure:
            status = TestingStatus.FAILED
        elif all_reported:
            status = TestingStatus.COMPLETED if all_compliant else TestingStatus.FAILED
        else:
            status = TestingStatus.TESTING

        requirement.compliance_met = all_compliant
        if status != requirement.status:
            logger.info(f"Test {requirement.test_id} -> {status.value}")
        requirement.status = status


# ---------------------------------------------------------------------------
# Documentation
# ---------------------------------------------------------------------------

DOCUMENT_TRANSITIONS = {
    DocumentStatus.NOT_STARTED: frozenset({
        DocumentStatus.DRAFT, DocumentStatus.SUBMITTED, DocumentStatus.UNDER_REVIEW, DocumentStatus.APPROVED,
    }),
    DocumentStatus.DRAFT: frozenset({
        DocumentStatus.SUBMITTED, DocumentStatus.UNDER_REVIEW, DocumentStatus.APPROVED,
    }),
    DocumentStatus.SUBMITTED: frozenset({
        DocumentStatus.UNDER_REVIEW, DocumentStatus.APPROVED, DocumentStatus.REJECTED,
    }),
    DocumentStatus.UNDER_REVIEW: frozenset({DocumentStatus.APPROVED, DocumentStatus.REJECTED}),
    DocumentStatus.APPROVED: frozenset(),
    DocumentStatus.REJECTED: frozenset({DocumentStatus.DRAFT, DocumentStatus.SUBMITTED}),
}

# Moving back to these states discards any earlier verification outcome
_VERIFICATION_RESET = frozenset({DocumentStatus.DRAFT, DocumentStatus.SUBMITTED, DocumentStatus.REJECTED})


class DocumentationTracker:
    ledger = "document"

    def _find(self, record: ComplianceRecord, document_id: str) -> DocumentationRequirement:
        for document in record.documentation_requirements:
            if document.document_id == document_id:
                return document
        raise UnknownItemError(self.ledger, document_id)

    def apply_update(
        self, record: ComplianceRecord, command: ApproveDocument, now: datetime
    ) -> List[SpendEvent]:
        document = self._find(record, command.document_id)
        target = command.status
        status_changed = target != document.status

        if status_changed:
            _check_transition(DOCUMENT_TRANSITIONS, self.ledger, document.document_id, document.status, target)

        # verified is only ever recorded together with approval
        if command.verification_status == VerificationStatus.VERIFIED and target != DocumentStatus.APPROVED:
            raise InvalidTransitionError(
                f"document {document.document_id}: verification can only be recorded with approval"
            )
        if (
            not status_changed
            and target == DocumentStatus.APPROVED
            and command.verification_status not in (None, document.verification_status)
        ):
            raise InvalidTransitionError(
                f"document {document.document_id}: approved documents cannot change verification"
            )
        if (
            status_changed
            and target == DocumentStatus.APPROVED
            and document.requires_third_party_verification
            and command.verification_status != VerificationStatus.VERIFIED
        ):
            raise InvalidTransitionError(
                f"document {document.document_id}: approval requires third-party verification"
            )

        if status_changed and target in _VERIFICATION_RESET and document.verification_status is not None:
            verification = command.verification_status or VerificationStatus.PENDING
        else:
            verification = command.verification_status or document.verification_status

        changed = status_changed
        if verification != document.verification_status:
            document.verification_status = verification
            if verification == VerificationStatus.PENDING:
                document.verified_by = None
            changed = True
        if command.verified_by is not None and command.verified_by != document.verified_by:
            document.verified_by = command.verified_by
            changed = True
        if command.document_url is not None and command.document_url != document.document_url:
            document.document_url = command.document_url
            changed = True
        if not changed:
            return []

        document.status = target
        if status_changed:
            logger.info(f"Document {document.document_id} -> {target.value}")

        if command.actual_cost and status_changed:
            return [SpendEvent(
                category=CostCategory.DOCUMENTATION_COSTS,
                amount=command.actual_cost,
                description=f"{document.document_name} ({target.value})",
                milestone_id=DOCUMENTATION_COMPLETE,
            )]
        return []


class TrackerSet:
    """Routes each update command to the tracker that owns its ledger."""

    def __init__(self):
        self.checklist = ChecklistTracker()
        self.certifications = CertificationTracker()
        self.testing = TestingTracker()
        self.documentation = DocumentationTracker()

    def apply(self, record: ComplianceRecord, command: UpdateCommand, now: datetime) -> List[SpendEvent]:
        handlers = {
            "checklist": self.checklist.apply_update,
            "certification": self.certifications.apply_update,
            "test_result": self.testing.submit_result,
            "test_schedule": self.testing.schedule,
            "document": self.documentation.apply_update,
        }
        return handlers[command.kind](record, command, now)
