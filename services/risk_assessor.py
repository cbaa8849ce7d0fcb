# WORKFLOW: Deterministic risk assessment over regulations and batch attributes.
# Used by: Record builder (initial assessment), compliance engine (reassess_risk)
# Functions:
# 1. RiskPolicy.level_for() - Threshold the maximum factor score into a RiskLevel
# 2. RiskAssessor.assess() - Build factors, mitigations, contingency plans and trend
# 3. _build_factors() - Factor list for the batch, market and ledger state
#
# Assessment flow: batch + regulations + market + ledger state -> RiskFactor list ->
# max(risk_score) -> RiskPolicy -> overall_risk_level
# Every factor score is probability x impact_severity. Thresholds come from settings and
# can be tuned per market, never from constants in this module.

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence
import logging

from api.schemas.compliance import (
    BatchDescriptor,
    CertificationRequirement,
    CertificationStatus,
    ContingencyPlan,
    EnforcementLevel,
    MitigationStatus,
    MitigationStrategy,
    Regulation,
    RiskAssessment,
    RiskFactor,
    RiskFactorType,
    RiskLevel,
    RiskTrend,
    TestingRequirement,
    TestingStatus,
)
from core.config import Settings
from services.catalog import MarketProfile

logger = logging.getLogger(__name__)

# Trend changes smaller than this are reported as stable
TREND_TOLERANCE = 0.1

_REVIEW_CADENCE = {
    RiskLevel.CRITICAL: "Weekly risk review with compliance manager",
    RiskLevel.HIGH: "Weekly risk review with compliance manager",
    RiskLevel.MEDIUM: "Monthly risk review",
    RiskLevel.LOW: "Quarterly risk review",
}


class RiskPolicy:
    """Maps the highest factor score to a risk level."""

    def __init__(self, thresholds: Dict[str, float]):
        self.critical = thresholds["critical"]
        self.high = thresholds["high"]
        self.medium = thresholds["medium"]

    @classmethod
    def for_market(cls, settings: Settings, market: Optional[MarketProfile] = None) -> "RiskPolicy":
        thresholds = dict(settings.risk_thresholds)
        if market is not None:
            thresholds.update(market.risk_thresholds)
        return cls(thresholds)

    def level_for(self, score: float) -> RiskLevel:
        if score >= self.critical:
            return RiskLevel.CRITICAL
        if score >= self.high:
            return RiskLevel.HIGH
        if score >= self.medium:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW


def _factor(
    factor_id: str,
    factor_type: RiskFactorType,
    description: str,
    probability: float,
    impact: float,
    controls: List[str],
    mitigation_effectiveness: float,
    owner: str = "Compliance Manager",
    review_frequency: str = "Monthly",
) -> RiskFactor:
    probability = min(max(probability, 0.0), 1.0)
    score = round(probability * impact, 4)
    return RiskFactor(
        factor_id=factor_id,
        factor_type=factor_type,
        description=description,
        probability=probability,
        impact_severity=impact,
        risk_score=score,
        current_controls=controls,
        residual_risk=round(score * (1 - mitigation_effectiveness), 4),
        owner=owner,
        review_frequency=review_frequency,
    )


_MITIGATIONS = {
    "REGULATORY_CHANGE": (
        "Subscribe to destination market regulatory alerts and review requirements before shipment",
        500, "Ongoing", 0.7, ["Regulatory affairs specialist"], ["No shipments affected by unannounced rule changes"],
    ),
    "CRITICAL_REQUIREMENTS": (
        "Assign an owner and verification step to every critical requirement",
        800, "2 weeks", 0.6, ["Compliance manager", "QA staff"], ["All critical checklist items verified"],
    ),
    "MARKET_STRICTNESS": (
        "Engage a destination-market consultant for pre-shipment review",
        1500, "1 month", 0.5, ["External consultant"], ["Zero border findings"],
    ),
    "PRIOR_REJECTIONS": (
        "Run root-cause analysis on previous rejections and add pre-shipment testing",
        2000, "1 month", 0.6, ["QA manager", "Accredited lab"], ["No repeat rejection causes"],
    ),
    "ORGANIC_INTEGRITY": (
        "Audit chain of custody and segregation for organic lots",
        700, "2 weeks", 0.7, ["Organic certifier liaison"], ["Clean chain-of-custody audit"],
    ),
    "PERISHABILITY": (
        "Pre-book cold chain capacity and expedite document preparation",
        1000, "1 week", 0.5, ["Logistics coordinator"], ["Dwell time within product shelf life"],
    ),
    "TEST_FAILURE": (
        "Quarantine affected lots, investigate the exceedance and retest",
        1200, "2 weeks", 0.5, ["Accredited lab", "Agronomist"], ["Retest results within limits"],
    ),
    "LAPSED_CERTIFICATION": (
        "Re-apply for lapsed or rejected certifications and schedule the audit",
        1000, "1 month", 0.6, ["Certification body"], ["All mandatory certifications approved"],
    ),
}


class RiskAssessor:
    """Builds a RiskAssessment from regulations, batch attributes and ledger state."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def assess(
        self,
        batch: BatchDescriptor,
        regulations: Sequence[Regulation],
        market: MarketProfile,
        now: datetime,
        certifications: Sequence[CertificationRequirement] = (),
        testing: Sequence[TestingRequirement] = (),
        previous: Optional[RiskAssessment] = None,
        alternative_markets: Sequence[str] = (),
    ) -> RiskAssessment:
        """
        Assess export risk for a batch.

        Args:
            batch: Batch descriptor
            regulations: Regulations attached to the record
            market: Destination market profile
            now: Assessment time
            certifications: Current certification ledger
            testing: Current testing ledger
            previous: Previous assessment, used for the trend
            alternative_markets: Other markets to fall back to in contingency plans

        Returns:
            RiskAssessment with factors, mitigations, contingency plans and overall level
        """
        factors = self._build_factors(batch, regulations, market, certifications, testing)
        policy = RiskPolicy.for_market(self.settings, market)
        highest = max((f.risk_score for f in factors), default=0.0)
        level = policy.level_for(highest)

        mitigations = [self._mitigation_for(f) for f in factors]
        trend = self._trend(highest, previous)
        if previous is not None:
            # Carry forward progress on strategies that are still relevant
            prior_status = {m.risk_factor_id: m.status for m in previous.mitigation_strategies}
            for strategy in mitigations:
                strategy.status = prior_status.get(strategy.risk_factor_id, strategy.status)

        assessment = RiskAssessment(
            overall_risk_level=level,
            risk_factors=factors,
            mitigation_strategies=mitigations,
            contingency_plans=self._contingency_plans(level, market, alternative_markets),
            risk_monitoring_plan=self._monitoring_plan(level),
            last_assessment_date=now,
            next_assessment_date=now + timedelta(days=self.settings.risk_review_interval_days),
            risk_trend=trend,
        )
        logger.info(
            f"Risk assessed for batch {batch.batch_id} -> {market.country_code}: "
            f"{len(factors)} factors, highest {highest:.2f}, level {level.value}, trend {trend.value}"
        )
        return assessment

    def _build_factors(
        self,
        batch: BatchDescriptor,
        regulations: Sequence[Regulation],
        market: MarketProfile,
        certifications: Sequence[CertificationRequirement],
        testing: Sequence[TestingRequirement],
    ) -> List[RiskFactor]:
        factors = [
            _factor(
                "REGULATORY_CHANGE",
                RiskFactorType.REGULATORY,
                f"Regulatory changes in {market.market_name} affecting {len(regulations)} attached regulations",
                0.3,
                4.0,
                ["Regulatory monitoring"],
                _MITIGATIONS["REGULATORY_CHANGE"][3],
                review_frequency="Quarterly",
            ),
            _factor(
                "MARKET_STRICTNESS",
                RiskFactorType.MARKET,
                f"Border enforcement strictness of {market.market_name}",
                0.5,
                market.strictness,
                ["Pre-shipment document review"],
                _MITIGATIONS["MARKET_STRICTNESS"][3],
            ),
        ]

        critical_requirements = [
            req.requirement_id
            for regulation in regulations
            for req in regulation.requirements
            if req.enforcement_level == EnforcementLevel.CRITICAL
        ]
        if critical_requirements:
            factors.append(_factor(
                "CRITICAL_REQUIREMENTS",
                RiskFactorType.REGULATORY,
                f"{len(critical_requirements)} critical requirements: {', '.join(critical_requirements)}",
                min(0.1 * len(critical_requirements), 0.5),
                4.5,
                ["Compliance checklist"],
                _MITIGATIONS["CRITICAL_REQUIREMENTS"][3],
            ))

        if batch.previous_rejections > 0:
            factors.append(_factor(
                "PRIOR_REJECTIONS",
                RiskFactorType.OPERATIONAL,
                f"{batch.previous_rejections} previous border rejections for this supply chain",
                0.2 * batch.previous_rejections,
                5.0,
                ["Rejection history review"],
                _MITIGATIONS["PRIOR_REJECTIONS"][3],
                owner="Quality Manager",
            ))

        if batch.organic_certified:
            factors.append(_factor(
                "ORGANIC_INTEGRITY",
                RiskFactorType.OPERATIONAL,
                "Loss of organic status through commingling or prohibited inputs",
                0.3,
                3.5,
                ["Organic system plan", "Lot segregation"],
                _MITIGATIONS["ORGANIC_INTEGRITY"][3],
            ))

        if batch.crop_type.strip().lower() in {c.lower() for c in market.perishable_crops}:
            factors.append(_factor(
                "PERISHABILITY",
                RiskFactorType.TECHNICAL,
                f"{batch.crop_type} is perishable; clearance delays reduce saleable shelf life",
                0.4,
                3.0,
                ["Cold chain"],
                _MITIGATIONS["PERISHABILITY"][3],
                review_frequency="Weekly",
            ))

        failed_tests = [t.test_id for t in testing if t.status == TestingStatus.FAILED]
        if failed_tests:
            factors.append(_factor(
                "TEST_FAILURE",
                RiskFactorType.TECHNICAL,
                f"Failed lab tests: {', '.join(failed_tests)}",
                0.9,
                4.0,
                ["Accredited laboratory testing"],
                _MITIGATIONS["TEST_FAILURE"][3],
                owner="Quality Manager",
                review_frequency="Weekly",
            ))

        lapsed = [
            c.certification_id
            for c in certifications
            if c.mandatory and c.status in (CertificationStatus.EXPIRED, CertificationStatus.REJECTED)
        ]
        if lapsed:
            factors.append(_factor(
                "LAPSED_CERTIFICATION",
                RiskFactorType.REGULATORY,
                f"Mandatory certifications expired or rejected: {', '.join(lapsed)}",
                0.8,
                4.0,
                ["Certification tracking"],
                _MITIGATIONS["LAPSED_CERTIFICATION"][3],
            ))

        return factors

    def _mitigation_for(self, factor: RiskFactor) -> MitigationStrategy:
        description, cost, timeline, effectiveness, resources, metrics = _MITIGATIONS[factor.factor_id]
        return MitigationStrategy(
            strategy_id=f"MIT-{factor.factor_id}",
            risk_factor_id=factor.factor_id,
            strategy_description=description,
            implementation_cost=cost,
            implementation_timeline=timeline,
            effectiveness_rating=effectiveness,
            resource_requirements=list(resources),
            success_metrics=list(metrics),
            status=MitigationStatus.PLANNED,
        )

    def _trend(self, highest: float, previous: Optional[RiskAssessment]) -> RiskTrend:
        if previous is None:
            return RiskTrend.STABLE
        delta = highest - previous.highest_risk_score
        if delta > TREND_TOLERANCE:
            return RiskTrend.WORSENING
        if delta < -TREND_TOLERANCE:
            return RiskTrend.IMPROVING
        return RiskTrend.STABLE

    def _contingency_plans(
        self, level: RiskLevel, market: MarketProfile, alternative_markets: Sequence[str]
    ) -> List[ContingencyPlan]:
        plans = [
            ContingencyPlan(
                plan_id="CP-BORDER-REJECTION",
                scenario_description=f"Consignment rejected at the {market.market_name} border",
                trigger_conditions=["Border rejection notice", "Failed official control sample"],
                immediate_actions=[
                    "Request counter-analysis of the official sample",
                    "Arrange re-export or redirection of the consignment",
                ],
                alternative_markets=[m for m in alternative_markets if m != market.country_code],
                financial_impact=0.0,
            )
        ]
        if level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            plans.append(ContingencyPlan(
                plan_id="CP-SHIPMENT-HOLD",
                scenario_description="Shipment held until high-severity risks are mitigated",
                trigger_conditions=[f"Overall risk level {level.value}"],
                immediate_actions=["Notify buyer of potential delay", "Escalate to compliance manager"],
            ))
        return plans

    def _monitoring_plan(self, level: RiskLevel) -> List[str]:
        plan = [
            "Review regulatory updates for the destination market",
            "Track certification expiry dates",
            "Review lab results as they are submitted",
        ]
        plan.append(_REVIEW_CADENCE[level])
        return plan
