# WORKFLOW: Assembles a complete compliance record from catalog data and batch context.
# Used by: Compliance engine (initialize)
# Functions:
# 1. build() - Run every build step in dependency order and return the record
# 2. _certifications() - Regulation-driven + market default + buyer certifications
# 3. _documents() - Regulation-driven + market default + buyer documents
# 4. _tests() - Test templates matched against the market's accredited labs
# 5. _checklist() - One item per mandatory/critical requirement and per certification
#
# Build flow: regulations -> certifications -> documents -> tests -> checklist ->
# risk -> timeline -> cost -> ComplianceRecord(score=0, status=pending)
# Any missing catalog data raises CatalogDataUnavailableError before a record exists,
# so a partially built record can never reach the store.

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
import logging
import uuid

from api.schemas.compliance import (
    AccreditedLab,
    BatchDescriptor,
    CertificationRequirement,
    ChecklistCategory,
    ComplianceChecklistItem,
    ComplianceRecord,
    ComplianceStatus,
    DocumentationRequirement,
    EnforcementLevel,
    ExportRequirements,
    Regulation,
    TestingRequirement,
)
from core.config import Settings
from core.exceptions import CatalogDataUnavailableError
from services.catalog import MarketProfile, RegulationCatalog
from services.cost_ledger import CostLedger
from services.risk_assessor import RiskAssessor
from services.timeline import TimelineScheduler

logger = logging.getLogger(__name__)

_EFFORT_HOURS = {
    EnforcementLevel.CRITICAL: 16.0,
    EnforcementLevel.MANDATORY: 8.0,
}
CERTIFICATION_EFFORT_HOURS = 24.0


def _ordered_ids(sources: Iterable[Tuple[Iterable[str], bool]]) -> List[Tuple[str, bool]]:
    """De-duplicate ids across sources, keeping first position and OR-ing the mandatory flag."""
    order: List[str] = []
    mandatory: Dict[str, bool] = {}
    for ids, is_mandatory in sources:
        for item_id in ids:
            if item_id not in mandatory:
                order.append(item_id)
                mandatory[item_id] = is_mandatory
            else:
                mandatory[item_id] = mandatory[item_id] or is_mandatory
    return [(item_id, mandatory[item_id]) for item_id in order]


class ComplianceRecordBuilder:
    """Builds new compliance records. Holds no per-record state."""

    def __init__(
        self,
        catalog: RegulationCatalog,
        settings: Settings,
        risk_assessor: Optional[RiskAssessor] = None,
        scheduler: Optional[TimelineScheduler] = None,
        cost_ledger: Optional[CostLedger] = None,
    ):
        self.catalog = catalog
        self.settings = settings
        self.risk_assessor = risk_assessor or RiskAssessor(settings)
        self.scheduler = scheduler or TimelineScheduler(settings)
        self.cost_ledger = cost_ledger or CostLedger()

    def build(
        self,
        batch: BatchDescriptor,
        destination_country: str,
        buyer_id: str,
        requirements: Optional[ExportRequirements],
        now: datetime,
    ) -> ComplianceRecord:
        """
        Build a compliance record for a (batch, destination, buyer) triple.

        Args:
            batch: Batch descriptor
            destination_country: Destination country code
            buyer_id: Buyer identifier
            requirements: Buyer-specific overrides
            now: Build time

        Returns:
            ComplianceRecord with score 0 and status pending

        Raises:
            CatalogDataUnavailableError: Market, crop or a referenced template is unknown
        """
        destination = destination_country.strip().upper()
        requirements = requirements or ExportRequirements()
        logger.info(
            f"Building compliance record for batch {batch.batch_id} ({batch.crop_type}) -> {destination}, "
            f"buyer {buyer_id}"
        )

        market = self.catalog.get_market(destination)
        if market is None:
            raise CatalogDataUnavailableError(f"No regulation data for destination {destination}")

        regulations = self.catalog.get_regulations(batch.crop_type, destination, batch.organic_certified)
        if regulations is None:
            raise CatalogDataUnavailableError(
                f"No regulation data for crop {batch.crop_type} in destination {destination}"
            )

        certifications = self._certifications(regulations, market, requirements)
        documents = self._documents(regulations, market, requirements, now)
        tests = self._tests(regulations, market, requirements, destination)
        checklist = self._checklist(regulations, certifications, now)

        risk = self.risk_assessor.assess(
            batch,
            regulations,
            market,
            now,
            certifications=certifications,
            testing=tests,
            alternative_markets=self.catalog.markets(),
        )
        timeline = self.scheduler.build(certifications, tests, documents, checklist, now)
        cost = self.cost_ledger.build(market, certifications, tests, documents, timeline)

        record = ComplianceRecord(
            compliance_id=f"COMP-{uuid.uuid4().hex[:12].upper()}",
            batch=batch,
            destination_country=destination,
            buyer_id=buyer_id,
            export_requirements=requirements,
            export_regulations=regulations,
            certification_requirements=certifications,
            documentation_requirements=documents,
            testing_requirements=tests,
            compliance_checklist=checklist,
            compliance_status=ComplianceStatus.PENDING,
            compliance_score=0,
            risk_assessment=risk,
            compliance_timeline=timeline,
            cost_breakdown=cost,
            assigned_inspector=self.settings.assigned_inspector,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(days=self.settings.record_validity_days),
        )
        self.scheduler.sync(record, now)

        logger.info(
            f"Built {record.compliance_id}: {len(regulations)} regulations, {len(certifications)} certifications, "
            f"{len(documents)} documents, {len(tests)} tests, {len(checklist)} checklist items"
        )
        return record

    def _certifications(
        self, regulations: List[Regulation], market: MarketProfile, requirements: ExportRequirements
    ) -> List[CertificationRequirement]:
        sources = [(r.certification_ids, r.mandatory) for r in regulations]
        sources.append((market.default_certifications, True))
        sources.append((requirements.additional_certifications, True))

        certifications = []
        for certification_id, mandatory in _ordered_ids(sources):
            template = self.catalog.get_certification_template(certification_id)
            if template is None:
                raise CatalogDataUnavailableError(f"Unknown certification template: {certification_id}")
            template.mandatory = mandatory
            certifications.append(template)
        return certifications

    def _documents(
        self,
        regulations: List[Regulation],
        market: MarketProfile,
        requirements: ExportRequirements,
        now: datetime,
    ) -> List[DocumentationRequirement]:
        sources = [(r.document_ids, r.mandatory) for r in regulations]
        sources.append((market.default_documents, True))
        sources.append((requirements.additional_documents, True))

        documents = []
        for document_id, _ in _ordered_ids(sources):
            template = self.catalog.get_document_template(document_id)
            if template is None:
                raise CatalogDataUnavailableError(f"Unknown document template: {document_id}")
            fields = template.model_dump(exclude={"submission_deadline_days"})
            documents.append(DocumentationRequirement(
                **fields,
                submission_deadline=now + timedelta(days=template.submission_deadline_days),
            ))
        return documents

    def _tests(
        self,
        regulations: List[Regulation],
        market: MarketProfile,
        requirements: ExportRequirements,
        destination: str,
    ) -> List[TestingRequirement]:
        sources = [(r.test_ids, r.mandatory) for r in regulations]
        sources.append((market.default_tests, True))
        sources.append((requirements.additional_tests, True))
        test_ids = _ordered_ids(sources)
        if not test_ids:
            return []

        labs = self.catalog.get_accredited_labs(destination)
        if labs is None:
            raise CatalogDataUnavailableError(f"No accredited lab data for destination {destination}")

        tests = []
        for test_id, _ in test_ids:
            template = self.catalog.get_test_template(test_id)
            if template is None:
                raise CatalogDataUnavailableError(f"Unknown test template: {test_id}")
            qualified = self._labs_for(labs, template.test_type)
            costs = [lab.cost_structure[template.test_type] for lab in qualified if template.test_type in lab.cost_structure]
            turnarounds = [
                lab.turnaround_times[template.test_type] for lab in qualified if template.test_type in lab.turnaround_times
            ]
            fields = template.model_dump()
            fields["cost_estimate"] = min(costs) if costs else template.cost_estimate
            fields["turnaround_time_days"] = min(turnarounds) if turnarounds else template.turnaround_time_days
            tests.append(TestingRequirement(**fields, accredited_labs=qualified))
        return tests

    def _labs_for(self, labs: List[AccreditedLab], test_type) -> List[AccreditedLab]:
        return [
            lab for lab in labs
            if test_type in lab.turnaround_times or test_type in lab.cost_structure
        ]

    def _checklist(
        self,
        regulations: List[Regulation],
        certifications: List[CertificationRequirement],
        now: datetime,
    ) -> List[ComplianceChecklistItem]:
        items = []
        for regulation in regulations:
            for requirement in regulation.requirements:
                if requirement.enforcement_level == EnforcementLevel.ADVISORY:
                    continue
                due_days = self.settings.checklist_due_days + (requirement.grace_period_days or 0)
                items.append(ComplianceChecklistItem(
                    item_id=f"CHK-{regulation.regulation_id}-{requirement.requirement_id}",
                    category=ChecklistCategory.REGULATORY,
                    description=f"{requirement.description} ({regulation.regulation_name})",
                    mandatory=regulation.mandatory or requirement.enforcement_level == EnforcementLevel.CRITICAL,
                    assigned_to="Compliance Team",
                    due_date=now + timedelta(days=due_days),
                    notes=f"Acceptance: {requirement.acceptance_criteria}",
                    estimated_effort_hours=_EFFORT_HOURS[requirement.enforcement_level],
                    regulation_id=regulation.regulation_id,
                    requirement_id=requirement.requirement_id,
                ))

        for certification in certifications:
            items.append(ComplianceChecklistItem(
                item_id=f"CHK-CERT-{certification.certification_id}",
                category=ChecklistCategory.CERTIFICATION,
                description=f"Obtain {certification.certification_name}",
                mandatory=certification.mandatory,
                assigned_to="Certification Team",
                due_date=now + timedelta(days=certification.processing_time_days),
                estimated_effort_hours=CERTIFICATION_EFFORT_HOURS,
                certification_id=certification.certification_id,
            ))
        return items
