# WORKFLOW: Cost estimation at build time and actual spend accumulation.
# Used by: Record builder (build), trackers via compliance engine, spend endpoint
# Functions:
# 1. build() - Freeze per-category and per-milestone estimates
# 2. record_spend() - Append a spend entry and recompute actual totals and variance
#
# Cost flow: certification/test/document templates + market fixed costs -> category
# estimates (frozen) -> spend entries -> actual totals -> budget_variance = actual - estimated
# Estimates are never reduced after build; only actual spend grows.

from datetime import datetime
from typing import Dict, List, Optional, Sequence
import logging
import uuid

from pydantic import BaseModel

from api.schemas.compliance import (
    CertificationRequirement,
    ComplianceCostBreakdown,
    ComplianceTimeline,
    CostCategory,
    CostEntry,
    DocumentationRequirement,
    TestingRequirement,
)
from core.exceptions import InvalidTransitionError, UnknownItemError
from services.catalog import MarketProfile
from services.timeline import (
    CERTIFICATIONS_COMPLETE,
    DOCUMENTATION_COMPLETE,
    INIT_COMPLIANCE,
    TESTING_COMPLETE,
)

logger = logging.getLogger(__name__)


class SpendEvent(BaseModel):
    """Real spend reported by a tracker, booked by the engine after the update succeeds."""
    category: CostCategory
    amount: float
    description: str
    reference: Optional[str] = None
    milestone_id: Optional[str] = None


def _money(value: float) -> float:
    return round(value, 2)


class CostLedger:
    """Estimates and tracks compliance costs for a record."""

    def build(
        self,
        market: MarketProfile,
        certifications: Sequence[CertificationRequirement],
        testing: Sequence[TestingRequirement],
        documentation: Sequence[DocumentationRequirement],
        timeline: ComplianceTimeline,
    ) -> ComplianceCostBreakdown:
        """
        Compute the frozen cost estimate for a new record.

        Args:
            market: Destination market profile (fixed costs, inspection fee, contingency rate)
            certifications: Certification ledger
            testing: Testing ledger
            documentation: Documentation ledger
            timeline: Timeline, used to attribute estimates to milestones

        Returns:
            ComplianceCostBreakdown with every category present
        """
        categories: Dict[CostCategory, float] = {category: 0.0 for category in CostCategory}
        categories[CostCategory.CERTIFICATION_FEES] = sum(c.cost_estimate for c in certifications)
        categories[CostCategory.TESTING_COSTS] = sum(t.cost_estimate for t in testing)
        categories[CostCategory.DOCUMENTATION_COSTS] = sum(d.cost_estimate for d in documentation)
        categories[CostCategory.INSPECTION_FEES] = market.inspection_fee * sum(
            1 for c in certifications if c.inspection_required
        )
        for category, amount in market.fixed_costs.items():
            categories[category] += amount

        subtotal = sum(categories.values())
        categories[CostCategory.CONTINGENCY_RESERVE] += subtotal * market.contingency_rate
        categories = {category: _money(amount) for category, amount in categories.items()}

        milestone_ids = {m.milestone_id for m in timeline.milestones}
        by_milestone: Dict[str, float] = {m.milestone_id: 0.0 for m in timeline.milestones}
        attributed = 0.0
        for milestone_id, amount in (
            (CERTIFICATIONS_COMPLETE, categories[CostCategory.CERTIFICATION_FEES] + categories[CostCategory.INSPECTION_FEES]),
            (TESTING_COMPLETE, categories[CostCategory.TESTING_COSTS]),
            (DOCUMENTATION_COMPLETE, categories[CostCategory.DOCUMENTATION_COSTS]),
        ):
            if milestone_id in milestone_ids:
                by_milestone[milestone_id] = _money(amount)
                attributed += amount

        total = _money(sum(categories.values()))
        by_milestone[INIT_COMPLIANCE] = _money(total - attributed)

        breakdown = ComplianceCostBreakdown(
            total_estimated_cost=total,
            cost_categories=categories,
            actual_cost_categories={category: 0.0 for category in CostCategory},
            cost_by_milestone=by_milestone,
            actual_cost_by_milestone={milestone_id: 0.0 for milestone_id in by_milestone},
            budget_variance=_money(-total),
        )
        logger.info(f"Cost estimate for {market.country_code}: {total:.2f}")
        return breakdown

    def record_spend(
        self,
        breakdown: ComplianceCostBreakdown,
        category: CostCategory,
        amount: float,
        description: str,
        now: datetime,
        reference: Optional[str] = None,
        milestone_id: Optional[str] = None,
    ) -> CostEntry:
        """
        Book actual spend against the breakdown.

        Args:
            breakdown: Cost breakdown (modified in place)
            category: Cost category
            amount: Non-negative amount
            description: What the money was spent on
            now: Booking time
            reference: Invoice or receipt reference
            milestone_id: Milestone to attribute the spend to

        Returns:
            The appended CostEntry

        Raises:
            InvalidTransitionError: amount is negative
            UnknownItemError: milestone_id is not on the timeline
        """
        if amount < 0:
            raise InvalidTransitionError(f"Spend amount must be non-negative, got {amount}")
        if milestone_id is not None and milestone_id not in breakdown.cost_by_milestone:
            raise UnknownItemError("milestone", milestone_id)

        entry = CostEntry(
            entry_id=f"COST-{uuid.uuid4().hex[:12].upper()}",
            category=category,
            amount=_money(amount),
            description=description,
            reference=reference,
            milestone_id=milestone_id,
            recorded_at=now,
        )
        breakdown.spend_entries.append(entry)
        breakdown.actual_cost_categories[category] = _money(
            breakdown.actual_cost_categories.get(category, 0.0) + entry.amount
        )
        if milestone_id is not None:
            breakdown.actual_cost_by_milestone[milestone_id] = _money(
                breakdown.actual_cost_by_milestone.get(milestone_id, 0.0) + entry.amount
            )
        breakdown.total_actual_cost = _money(breakdown.total_actual_cost + entry.amount)
        breakdown.budget_variance = _money(breakdown.total_actual_cost - breakdown.total_estimated_cost)
        logger.info(f"Spend recorded: {category.value} {entry.amount:.2f} ({description})")
        return entry

    def book_events(
        self, breakdown: ComplianceCostBreakdown, events: List[SpendEvent], now: datetime
    ) -> List[CostEntry]:
        return [
            self.record_spend(
                breakdown,
                event.category,
                event.amount,
                event.description,
                now,
                reference=event.reference,
                milestone_id=event.milestone_id if event.milestone_id in breakdown.cost_by_milestone else None,
            )
            for event in events
        ]
