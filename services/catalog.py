# WORKFLOW: Regulation and accredited-lab catalog for destination markets.
# Used by: Compliance record builder, risk assessor, catalog loader, health checks
# Functions:
# 1. get_regulations() - Ordered regulations for (crop, destination, organic flag)
# 2. get_accredited_labs() - Labs with per-test turnaround and cost tables
# 3. get_market() - Market profile (defaults, risk tuning, fixed costs)
# 4. get_*_template() - Certification, document and test templates by id
#
# Lookups are pure and deterministic. A lookup with no data returns None so callers
# can tell "zero rules apply" (empty list) apart from "data unavailable" (None).

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional
import logging

from pydantic import BaseModel, Field

from api.schemas.compliance import (
    AccreditedLab,
    CertificationRequirement,
    CostCategory,
    Regulation,
    SamplingRequirement,
    TestingParameter,
    TestType,
)

logger = logging.getLogger(__name__)


class DocumentTemplate(BaseModel):
    document_id: str
    document_type: str
    document_name: str
    required_by: List[str] = Field(default_factory=list)
    template_available: bool = False
    auto_generated: bool = False
    requires_third_party_verification: bool = False
    validity_period_days: Optional[int] = None
    preparation_days: int = 14
    submission_deadline_days: int = 30
    cost_estimate: float = Field(0.0, ge=0)
    language_requirements: List[str] = Field(default_factory=list)
    format_requirements: List[str] = Field(default_factory=list)


class TestTemplate(BaseModel):
    test_id: str
    test_name: str
    test_type: TestType
    required_by: List[str] = Field(default_factory=list)
    sampling_requirements: SamplingRequirement
    testing_parameters: List[TestingParameter] = Field(..., min_length=1)
    acceptance_criteria: str = "All parameters below regulatory limits"
    cost_estimate: float = Field(0.0, ge=0)
    turnaround_time_days: int = Field(0, ge=0)
    result_validity_days: int = 90


class MarketProfile(BaseModel):
    country_code: str
    market_name: str
    crop_types: Optional[List[str]] = None  # None = market covers every crop
    regulations: List[Regulation] = Field(default_factory=list)
    default_certifications: List[str] = Field(default_factory=list)
    default_documents: List[str] = Field(default_factory=list)
    default_tests: List[str] = Field(default_factory=list)
    accredited_labs: List[AccreditedLab] = Field(default_factory=list)
    strictness: float = Field(3.0, ge=0.0, le=5.0)
    risk_thresholds: Dict[str, float] = Field(default_factory=dict)
    fixed_costs: Dict[CostCategory, float] = Field(default_factory=dict)
    inspection_fee: float = 0.0
    contingency_rate: float = Field(0.1, ge=0.0, le=1.0)
    perishable_crops: List[str] = Field(default_factory=list)

    def covers_crop(self, crop_type: str) -> bool:
        if self.crop_types is None:
            return True
        return crop_type.strip().lower() in {c.lower() for c in self.crop_types}


class RegulationCatalog(ABC):
    """Abstract catalog interface consumed by the record builder."""

    @abstractmethod
    def get_market(self, destination_country: str) -> Optional[MarketProfile]:
        """Get the market profile, or None when the market is unknown."""
        pass

    @abstractmethod
    def get_regulations(
        self, crop_type: str, destination_country: str, organic: bool
    ) -> Optional[List[Regulation]]:
        """Get applicable regulations in catalog order, or None when no data exists."""
        pass

    @abstractmethod
    def get_accredited_labs(self, destination_country: str) -> Optional[List[AccreditedLab]]:
        """Get labs accredited for the market, or None when the market is unknown."""
        pass

    @abstractmethod
    def get_certification_template(self, certification_id: str) -> Optional[CertificationRequirement]:
        pass

    @abstractmethod
    def get_document_template(self, document_id: str) -> Optional[DocumentTemplate]:
        pass

    @abstractmethod
    def get_test_template(self, test_id: str) -> Optional[TestTemplate]:
        pass

    @abstractmethod
    def markets(self) -> List[str]:
        """List supported destination country codes."""
        pass


class StaticCatalog(RegulationCatalog):
    """In-process catalog seeded from market profiles and template tables."""

    def __init__(
        self,
        markets: Iterable[MarketProfile],
        certifications: Iterable[CertificationRequirement],
        documents: Iterable[DocumentTemplate],
        tests: Iterable[TestTemplate],
    ):
        self._markets: Dict[str, MarketProfile] = {m.country_code.upper(): m for m in markets}
        self._certifications = {c.certification_id: c for c in certifications}
        self._documents = {d.document_id: d for d in documents}
        self._tests = {t.test_id: t for t in tests}
        logger.info(
            f"Catalog loaded: {len(self._markets)} markets, {len(self._certifications)} certifications, "
            f"{len(self._documents)} documents, {len(self._tests)} tests"
        )

    def get_market(self, destination_country: str) -> Optional[MarketProfile]:
        market = self._markets.get(destination_country.strip().upper())
        return market.model_copy(deep=True) if market else None

    def get_regulations(
        self, crop_type: str, destination_country: str, organic: bool
    ) -> Optional[List[Regulation]]:
        market = self._markets.get(destination_country.strip().upper())
        if market is None:
            logger.warning(f"No regulation data for destination {destination_country}")
            return None
        if not market.covers_crop(crop_type):
            logger.warning(f"No regulation data for crop {crop_type} in {destination_country}")
            return None

        crop = crop_type.strip().lower()
        applicable = []
        for regulation in market.regulations:
            if regulation.crop_types and crop not in {c.lower() for c in regulation.crop_types}:
                continue
            if regulation.organic_only and not organic:
                continue
            applicable.append(regulation)
        return applicable

    def get_accredited_labs(self, destination_country: str) -> Optional[List[AccreditedLab]]:
        market = self._markets.get(destination_country.strip().upper())
        if market is None:
            return None
        return [lab.model_copy(deep=True) for lab in market.accredited_labs]

    def get_certification_template(self, certification_id: str) -> Optional[CertificationRequirement]:
        template = self._certifications.get(certification_id)
        return template.model_copy(deep=True) if template else None

    def get_document_template(self, document_id: str) -> Optional[DocumentTemplate]:
        template = self._documents.get(document_id)
        return template.model_copy(deep=True) if template else None

    def get_test_template(self, test_id: str) -> Optional[TestTemplate]:
        template = self._tests.get(test_id)
        return template.model_copy(deep=True) if template else None

    def markets(self) -> List[str]:
        return sorted(self._markets)


def create_default_catalog() -> StaticCatalog:
    """Build the catalog from the built-in market tables."""
    from services.catalog_data import (
        DEFAULT_CERTIFICATIONS,
        DEFAULT_DOCUMENTS,
        DEFAULT_MARKETS,
        DEFAULT_TESTS,
    )

    return StaticCatalog(
        markets=DEFAULT_MARKETS,
        certifications=DEFAULT_CERTIFICATIONS,
        documents=DEFAULT_DOCUMENTS,
        tests=DEFAULT_TESTS,
    )
