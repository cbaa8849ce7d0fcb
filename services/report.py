# WORKFLOW: Derived compliance report for a record.
# Used by: Compliance engine (generate_report), report endpoint
# Functions:
# 1. generate() - Assemble executive summary, ledger progress and summaries
# 2. _recommendations() - Derived advice, including empty-ledger scoring effects
# 3. _next_steps() - Next outstanding items across ledgers
#
# Report flow: ComplianceRecord (refreshed) -> summaries -> ComplianceReport
# Reports are derived on every call and never stored on the record. Expired records
# are reported with effective_status "void" instead of raising.

from datetime import datetime, timedelta
from typing import List, Optional
import logging

from api.schemas.compliance import (
    CertificationStatus,
    ComplianceRecord,
    DocumentStatus,
    MilestoneStatus,
    MitigationStatus,
    RiskLevel,
    TestingStatus,
)
from api.schemas.response import (
    ComplianceReport,
    CostSummary,
    DetailedStatus,
    ExecutiveSummary,
    LedgerProgress,
    RiskSummary,
    TimelineSummary,
)
from core.config import Settings
from services.scorer import LEDGERS, checklist_item_done, ledger_counts
from services.timeline import EXPORT_READY

logger = logging.getLogger(__name__)

MAX_NEXT_STEPS = 5


def _progress(completed: int, total: int) -> LedgerProgress:
    return LedgerProgress(completed=completed, total=total, ratio=completed / total if total else 0.0)


class ComplianceReportGenerator:
    """Builds ComplianceReport views over a record."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def generate(self, record: ComplianceRecord, now: datetime) -> ComplianceReport:
        """
        Generate the compliance report for a record.

        Args:
            record: Compliance record, already refreshed for `now`
            now: Generation time

        Returns:
            ComplianceReport
        """
        counts = ledger_counts(record)
        expired = record.is_expired(now)
        timeline = record.compliance_timeline
        risk = record.risk_assessment
        cost = record.cost_breakdown

        executive = ExecutiveSummary(
            compliance_id=record.compliance_id,
            batch_id=record.batch_id,
            destination_country=record.destination_country,
            buyer_id=record.buyer_id,
            overall_status=record.compliance_status,
            effective_status="void" if expired else record.compliance_status,
            compliance_score=record.compliance_score,
            completion_percentage=round(timeline.overall_completion_percentage),
            estimated_completion_date=self._estimated_completion(record),
            expires_at=record.expires_at,
            expired=expired,
        )
        detailed = DetailedStatus(**{ledger: _progress(*counts[ledger]) for ledger in LEDGERS})

        report = ComplianceReport(
            generated_at=now,
            executive_summary=executive,
            detailed_status=detailed,
            risk_analysis=RiskSummary(
                overall_risk_level=risk.overall_risk_level,
                highest_risk_score=risk.highest_risk_score,
                active_risks=sum(1 for f in risk.risk_factors if f.risk_score > 0),
                mitigation_strategies_implemented=sum(
                    1 for m in risk.mitigation_strategies
                    if m.status in (MitigationStatus.IMPLEMENTED, MitigationStatus.REVIEWED)
                ),
                risk_trend=risk.risk_trend,
                next_assessment_date=risk.next_assessment_date,
            ),
            cost_analysis=CostSummary(
                total_budget=cost.total_estimated_cost,
                actual_spend=cost.total_actual_cost,
                budget_variance=cost.budget_variance,
                remaining_budget=round(cost.total_estimated_cost - cost.total_actual_cost, 2),
            ),
            timeline_status=TimelineSummary(
                current_phase=timeline.current_phase,
                overall_completion=timeline.overall_completion_percentage,
                schedule_risk=timeline.schedule_risk,
                active_delays=sum(1 for d in timeline.delays if d.resolution_date is None),
                critical_path=list(timeline.critical_path),
                total_duration_days=timeline.total_duration_days,
            ),
            recommendations=self._recommendations(record, expired, now),
            next_steps=self._next_steps(record, expired),
        )
        logger.info(f"Report generated for {record.compliance_id} (expired={expired})")
        return report

    def _estimated_completion(self, record: ComplianceRecord) -> Optional[datetime]:
        timeline = record.compliance_timeline
        export_ready = next((m for m in timeline.milestones if m.milestone_id == EXPORT_READY), None)
        if export_ready is None:
            return None
        if export_ready.status == MilestoneStatus.COMPLETED:
            return export_ready.actual_date
        slip = max((d.delay_duration_days for d in timeline.delays if d.resolution_date is None), default=0)
        return export_ready.planned_date + timedelta(days=slip)

    def _recommendations(self, record: ComplianceRecord, expired: bool, now: datetime) -> List[str]:
        recommendations = []
        if expired:
            recommendations.append(
                "Record has expired; initialize a new compliance record before shipping this batch"
            )

        weights = self.settings.score_weights
        for ledger in record.score_breakdown.empty_ledgers:
            if self.settings.empty_ledger_full_credit:
                recommendations.append(
                    f"No {ledger} requirements apply; the {ledger} bucket is awarded its full {weights[ledger]} points"
                )
            else:
                recommendations.append(
                    f"No {ledger} requirements apply; the {ledger} bucket contributes 0 of {weights[ledger]} points"
                )

        risk_level = record.risk_assessment.overall_risk_level
        if risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            top = max(record.risk_assessment.risk_factors, key=lambda f: f.risk_score)
            recommendations.append(f"Mitigate {risk_level.value} risk: {top.description}")

        for test in record.testing_requirements:
            if test.status == TestingStatus.FAILED:
                failed = [r.parameter for r in test.results if not r.compliant]
                recommendations.append(
                    f"Investigate {test.test_name} exceedance ({', '.join(failed)}) and schedule a retest"
                )

        for certification in record.certification_requirements:
            if certification.status == CertificationStatus.EXPIRED:
                recommendations.append(f"Renew expired certification {certification.certification_name}")
            elif certification.status == CertificationStatus.REJECTED:
                recommendations.append(f"Re-apply for rejected certification {certification.certification_name}")
            elif (
                certification.status == CertificationStatus.APPROVED
                and certification.expiry_date is not None
                and certification.expiry_date - now <= timedelta(days=self.settings.risk_review_interval_days)
            ):
                recommendations.append(
                    f"Plan renewal of {certification.certification_name} before "
                    f"{certification.expiry_date.date().isoformat()}"
                )

        open_delays = [d for d in record.compliance_timeline.delays if d.resolution_date is None]
        if open_delays:
            recommendations.append(
                f"Recover schedule: {len(open_delays)} milestone(s) delayed "
                f"({', '.join(d.affected_milestone for d in open_delays)})"
            )

        if record.cost_breakdown.budget_variance > 0:
            recommendations.append(
                f"Actual spend exceeds estimate by {record.cost_breakdown.budget_variance:.2f}; review budget"
            )

        if not recommendations:
            recommendations.append("Maintain current compliance practices until shipment")
        return recommendations

    def _next_steps(self, record: ComplianceRecord, expired: bool) -> List[str]:
        if expired:
            return ["Initialize a new compliance record for this batch"]

        steps = []
        for certification in record.certification_requirements:
            if certification.status != CertificationStatus.APPROVED:
                steps.append(f"Obtain {certification.certification_name} ({certification.status.value})")
        for test in record.testing_requirements:
            if not (test.status == TestingStatus.COMPLETED and test.compliance_met):
                steps.append(f"Complete {test.test_name} ({test.status.value})")
        for item in sorted(record.compliance_checklist, key=lambda i: i.due_date):
            if item.mandatory and not checklist_item_done(item.completion_status):
                steps.append(f"Complete checklist item: {item.description}")
        for document in sorted(record.documentation_requirements, key=lambda d: d.submission_deadline):
            if document.status != DocumentStatus.APPROVED:
                steps.append(f"Prepare {document.document_name} ({document.status.value})")

        if not steps:
            return ["Request export readiness validation"]
        return steps[:MAX_NEXT_STEPS]
