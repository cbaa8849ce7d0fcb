# WORKFLOW: Milestone DAG scheduling, progress sync and delay tracking.
# Used by: Record builder (build), compliance engine (sync after updates and on reads)
# Functions:
# 1. build() - Seed milestones from ledger lead times, plan dates by longest path
# 2. sync() - Mirror ledger progress into milestones, record delays, recompute summary
# 3. _critical_path() - Longest dependency chain ending at EXPORT_READY
#
# Timeline flow: ledgers -> milestones (DAG) -> earliest finish per milestone ->
# planned dates + critical path -> sync(now) -> status, delays, completion, schedule risk
# Milestones are never removed; a missed milestone accrues a ComplianceDelay instead.

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence
import logging

from api.schemas.compliance import (
    CertificationRequirement,
    ComplianceChecklistItem,
    ComplianceDelay,
    ComplianceMilestone,
    ComplianceRecord,
    ComplianceTimeline,
    DocumentationRequirement,
    MilestoneLedger,
    MilestoneStatus,
    RiskLevel,
    TestingRequirement,
)
from core.config import Settings
from services.scorer import ledger_counts

logger = logging.getLogger(__name__)

INIT_COMPLIANCE = "INIT_COMPLIANCE"
CERTIFICATIONS_COMPLETE = "CERTIFICATIONS_COMPLETE"
TESTING_COMPLETE = "TESTING_COMPLETE"
CHECKLIST_COMPLETE = "CHECKLIST_COMPLETE"
DOCUMENTATION_COMPLETE = "DOCUMENTATION_COMPLETE"
EXPORT_READY = "EXPORT_READY"


class TimelineScheduler:
    """Builds and maintains the compliance milestone timeline."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def build(
        self,
        certifications: Sequence[CertificationRequirement],
        testing: Sequence[TestingRequirement],
        documentation: Sequence[DocumentationRequirement],
        checklist: Sequence[ComplianceChecklistItem],
        now: datetime,
    ) -> ComplianceTimeline:
        """
        Build the milestone timeline for a new record.

        Ledger milestones are only created for non-empty ledgers. Documentation
        depends on certifications and testing because certificates and lab reports
        are attached to the export documents.

        Args:
            certifications: Certification ledger
            testing: Testing ledger
            documentation: Documentation ledger
            checklist: Checklist ledger
            now: Build time

        Returns:
            ComplianceTimeline with planned dates and critical path
        """
        plans = [
            (INIT_COMPLIANCE, "Compliance Initialization", "Compliance record created",
             MilestoneLedger.NONE, 0, [], ["Compliance record"], "Compliance Team"),
        ]
        ledger_ids = []

        if certifications:
            duration = max(c.processing_time_days for c in certifications)
            plans.append((
                CERTIFICATIONS_COMPLETE, "Certifications Complete",
                "All required certifications obtained", MilestoneLedger.CERTIFICATIONS,
                duration, [INIT_COMPLIANCE], [c.certification_name for c in certifications],
                "Certification Team",
            ))
            ledger_ids.append(CERTIFICATIONS_COMPLETE)

        if testing:
            duration = self.settings.sampling_lead_days + max(t.turnaround_time_days for t in testing)
            plans.append((
                TESTING_COMPLETE, "Testing Complete", "All required lab tests passed",
                MilestoneLedger.TESTING, duration, [INIT_COMPLIANCE],
                [f"{t.test_name} report" for t in testing], "Quality Assurance",
            ))
            ledger_ids.append(TESTING_COMPLETE)

        if checklist:
            duration = max(max((item.due_date - now).days, 0) for item in checklist)
            plans.append((
                CHECKLIST_COMPLETE, "Checklist Complete", "All checklist items completed",
                MilestoneLedger.CHECKLIST, duration, [INIT_COMPLIANCE],
                ["Completed compliance checklist"], "Compliance Team",
            ))
            ledger_ids.append(CHECKLIST_COMPLETE)

        if documentation:
            duration = max(d.preparation_days for d in documentation)
            upstream = [m for m in (CERTIFICATIONS_COMPLETE, TESTING_COMPLETE) if m in ledger_ids]
            plans.append((
                DOCUMENTATION_COMPLETE, "Documentation Complete", "All export documents approved",
                MilestoneLedger.DOCUMENTATION, duration, upstream or [INIT_COMPLIANCE],
                [d.document_name for d in documentation], "Documentation Team",
            ))
            ledger_ids.append(DOCUMENTATION_COMPLETE)

        plans.append((
            EXPORT_READY, "Export Ready", "Batch cleared for export",
            MilestoneLedger.NONE, 0, ledger_ids or [INIT_COMPLIANCE],
            ["Export authorization"], "Compliance Manager",
        ))

        # Specs are listed in topological order, so one forward pass gives earliest finish
        finish: Dict[str, int] = {}
        for milestone_id, _, _, _, duration, deps, _, _ in plans:
            finish[milestone_id] = max((finish[d] for d in deps), default=0) + duration

        critical_path = self._critical_path(plans, finish)
        milestones = []
        for milestone_id, name, description, ledger, duration, deps, deliverables, party in plans:
            milestones.append(ComplianceMilestone(
                milestone_id=milestone_id,
                milestone_name=name,
                description=description,
                ledger=ledger,
                planned_duration_days=duration,
                planned_date=now + timedelta(days=finish[milestone_id]),
                dependencies=list(deps),
                deliverables=deliverables,
                success_criteria=[description],
                responsible_party=party,
                critical=milestone_id in critical_path,
            ))

        init = milestones[0]
        init.status = MilestoneStatus.COMPLETED
        init.actual_date = now
        init.progress_percentage = 100.0

        timeline = ComplianceTimeline(
            milestones=milestones,
            critical_path=critical_path,
            total_duration_days=finish[EXPORT_READY],
            contingency_time_buffer_days=self.settings.contingency_buffer_days,
        )
        self._summarize(timeline, now)
        logger.info(
            f"Timeline built: {len(milestones)} milestones, {timeline.total_duration_days} days, "
            f"critical path {' -> '.join(critical_path)}"
        )
        return timeline

    def _critical_path(self, plans: List[tuple], finish: Dict[str, int]) -> List[str]:
        deps_by_id = {plan[0]: plan[5] for plan in plans}
        path = [EXPORT_READY]
        current = EXPORT_READY
        while deps_by_id[current]:
            # First dependency with the latest finish wins ties, keeping the path stable
            current = max(deps_by_id[current], key=lambda d: finish[d])
            path.append(current)
        path.reverse()
        return path

    def sync(self, record: ComplianceRecord, now: datetime) -> ComplianceRecord:
        """
        Bring milestone state in line with the ledgers at time `now`.

        Args:
            record: Compliance record (modified in place)
            now: Evaluation time

        Returns:
            The same record
        """
        timeline = record.compliance_timeline
        counts = ledger_counts(record)

        for milestone in timeline.milestones:
            if milestone.milestone_id == INIT_COMPLIANCE:
                continue
            progress = self._milestone_progress(milestone, timeline, counts)
            milestone.progress_percentage = round(progress * 100, 2)

            if progress >= 1.0:
                if milestone.status != MilestoneStatus.COMPLETED:
                    milestone.status = MilestoneStatus.COMPLETED
                    milestone.actual_date = now
                self._resolve_delay(timeline, milestone.milestone_id, now)
                continue

            milestone.actual_date = None
            if now > milestone.planned_date:
                milestone.status = MilestoneStatus.DELAYED
                self._record_delay(timeline, milestone, now)
            elif milestone.planned_date - now <= timedelta(days=self.settings.at_risk_window_days):
                milestone.status = MilestoneStatus.AT_RISK
            elif progress > 0:
                milestone.status = MilestoneStatus.IN_PROGRESS
            else:
                milestone.status = MilestoneStatus.UPCOMING

        self._summarize(timeline, now)
        return record

    def _milestone_progress(
        self,
        milestone: ComplianceMilestone,
        timeline: ComplianceTimeline,
        counts: Dict[str, tuple],
    ) -> float:
        if milestone.ledger == MilestoneLedger.NONE:
            others = [m for m in timeline.milestones if m.milestone_id != milestone.milestone_id]
            if not others:
                return 1.0
            done = sum(1 for m in others if m.status == MilestoneStatus.COMPLETED)
            return done / len(others)
        completed, total = counts[milestone.ledger.value]
        return completed / total if total else 1.0

    def _open_delay(self, timeline: ComplianceTimeline, milestone_id: str) -> Optional[ComplianceDelay]:
        for delay in timeline.delays:
            if delay.affected_milestone == milestone_id and delay.resolution_date is None:
                return delay
        return None

    def _record_delay(self, timeline: ComplianceTimeline, milestone: ComplianceMilestone, now: datetime) -> None:
        days = max((now - milestone.planned_date).days, 1)
        delay = self._open_delay(timeline, milestone.milestone_id)
        if delay is not None:
            delay.delay_duration_days = days
            return

        sequence = sum(1 for d in timeline.delays if d.affected_milestone == milestone.milestone_id) + 1
        timeline.delays.append(ComplianceDelay(
            delay_id=f"DELAY-{milestone.milestone_id}-{sequence}",
            affected_milestone=milestone.milestone_id,
            delay_reason=f"{milestone.milestone_name} not completed by planned date",
            delay_duration_days=days,
            impact_assessment=(
                "Delays export readiness" if milestone.critical
                else "Absorbed by schedule slack unless it grows"
            ),
            mitigation_actions=[f"Escalate outstanding {milestone.ledger.value} items"],
            responsible_party=milestone.responsible_party,
            detected_at=now,
        ))
        logger.warning(f"Milestone {milestone.milestone_id} delayed by {days} days")

    def _resolve_delay(self, timeline: ComplianceTimeline, milestone_id: str, now: datetime) -> None:
        delay = self._open_delay(timeline, milestone_id)
        if delay is not None:
            delay.resolution_date = now
            logger.info(f"Delay {delay.delay_id} resolved")

    def _summarize(self, timeline: ComplianceTimeline, now: datetime) -> None:
        weight_total = 0.0
        weighted = 0.0
        for milestone in timeline.milestones:
            weight = self.settings.critical_milestone_weight if milestone.critical else 1.0
            weight_total += weight
            weighted += weight * milestone.progress_percentage
        timeline.overall_completion_percentage = round(weighted / weight_total, 2) if weight_total else 0.0

        pending = [m for m in timeline.milestones if m.status != MilestoneStatus.COMPLETED]
        timeline.current_phase = pending[0].milestone_name if pending else "Completed"
        timeline.schedule_risk = self._schedule_risk(timeline)

    def _schedule_risk(self, timeline: ComplianceTimeline) -> RiskLevel:
        delayed = [m for m in timeline.milestones if m.status == MilestoneStatus.DELAYED]
        critical_delayed = [m for m in delayed if m.critical]
        if critical_delayed:
            open_days = max(
                (d.delay_duration_days for d in timeline.delays
                 if d.resolution_date is None and d.affected_milestone in {m.milestone_id for m in critical_delayed}),
                default=0,
            )
            if open_days > timeline.contingency_time_buffer_days:
                return RiskLevel.CRITICAL
            return RiskLevel.HIGH
        if delayed or any(m.status == MilestoneStatus.AT_RISK for m in timeline.milestones):
            return RiskLevel.MEDIUM
        return RiskLevel.LOW
