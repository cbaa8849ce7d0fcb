# WORKFLOW: Shared fixtures for the Export Compliance API test suite.
# Used by: All test modules
# Fixtures:
# 1. clock - Fixed, manually advanced UTC clock
# 2. catalog / catalog_document - Small two-market catalog with known numbers
# 3. settings / engine - Compliance engine over an in-memory store
# 4. batch - Default coffee batch with no rejection history
#
# Catalog numbers (market XX, coffee, not organic):
#   REG_FS: R1 mandatory, R2 critical, R3 advisory -> checklist of 3 items with CERT_A
#   CERT_A 1000 (30 days, inspection), DOC_A 50, RESIDUE_T cheapest lab 250 / fastest 5 days
#   Estimate: 1000 + 250 + 50 + 100 inspection + 200 consultant = 1600, +10% = 1760
#   Risk: highest factor is market strictness 0.5 x 3.0 = 1.5 -> medium

from datetime import date, datetime, timedelta, timezone

import pytest

from api.schemas.compliance import (
    AccreditedLab,
    BatchDescriptor,
    CertificationRequirement,
    CostCategory,
    EnforcementLevel,
    Regulation,
    RegulationRequirement,
    RegulationType,
    SamplingRequirement,
    TestingParameter,
    TestType,
)
from core.config import Settings
from db.store import InMemoryComplianceStore
from services.catalog import DocumentTemplate, MarketProfile, StaticCatalog, TestTemplate
from services.compliance_engine import ComplianceEngine

START = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock returning a fixed instant until advanced."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def _requirement(requirement_id, level):
    return RegulationRequirement(
        requirement_id=requirement_id,
        requirement_type="food_safety",
        description=f"Requirement {requirement_id}",
        acceptance_criteria="Evidence on file",
        enforcement_level=level,
    )


def _lab(lab_id, cost, turnaround, rating):
    return AccreditedLab(
        lab_id=lab_id,
        lab_name=f"Lab {lab_id}",
        accreditation_body="ISO/IEC 17025",
        accreditation_number=f"ACC-{lab_id}",
        location="Testland",
        turnaround_times={TestType.CHEMICAL_RESIDUE: turnaround},
        cost_structure={TestType.CHEMICAL_RESIDUE: cost},
        quality_rating=rating,
    )


def build_fixture_catalog() -> StaticCatalog:
    certifications = [
        CertificationRequirement(
            certification_id="CERT_A",
            certification_name="Food Safety Certificate",
            issuing_authority="Testland Certification Body",
            validity_period_months=12,
            cost_estimate=1000,
            processing_time_days=30,
            inspection_required=True,
        ),
        CertificationRequirement(
            certification_id="CERT_ORG",
            certification_name="Organic Certificate",
            issuing_authority="Testland Organic Board",
            validity_period_months=12,
            cost_estimate=500,
            processing_time_days=20,
        ),
    ]
    documents = [
        DocumentTemplate(
            document_id="DOC_A",
            document_type="commercial",
            document_name="Commercial Invoice",
            preparation_days=10,
            submission_deadline_days=20,
            cost_estimate=50,
        ),
        DocumentTemplate(
            document_id="DOC_V",
            document_type="phytosanitary",
            document_name="Phytosanitary Certificate",
            requires_third_party_verification=True,
            preparation_days=5,
            submission_deadline_days=25,
            cost_estimate=80,
        ),
    ]
    tests = [
        TestTemplate(
            test_id="RESIDUE_T",
            test_name="Residue Screen",
            test_type=TestType.CHEMICAL_RESIDUE,
            sampling_requirements=SamplingRequirement(
                sample_size_kg=1.0,
                sampling_method="Random composite",
                sampling_frequency="Per batch",
                sample_preservation="Cool and dry",
            ),
            testing_parameters=[
                TestingParameter(
                    parameter_name="Glyphosate",
                    parameter_code="GLY",
                    unit="mg/kg",
                    detection_limit=0.01,
                    quantification_limit=0.05,
                    regulatory_limit=5.0,
                    test_method="LC-MS/MS",
                    reference_standard="Method 1",
                    critical_parameter=True,
                ),
                TestingParameter(
                    parameter_name="Chlorpyrifos",
                    parameter_code="CPF",
                    unit="mg/kg",
                    detection_limit=0.001,
                    quantification_limit=0.005,
                    regulatory_limit=0.01,
                    test_method="GC-MS",
                    reference_standard="Method 2",
                ),
            ],
            cost_estimate=400,
            turnaround_time_days=10,
        ),
    ]
    markets = [
        MarketProfile(
            country_code="XX",
            market_name="Testland",
            regulations=[
                Regulation(
                    regulation_id="REG_FS",
                    regulation_name="Testland Food Safety Act",
                    regulatory_body="Testland Food Agency",
                    country_code="XX",
                    regulation_type=RegulationType.FOOD_SAFETY,
                    mandatory=True,
                    description="Food safety controls for imported produce",
                    requirements=[
                        _requirement("R1", EnforcementLevel.MANDATORY),
                        _requirement("R2", EnforcementLevel.CRITICAL),
                        _requirement("R3", EnforcementLevel.ADVISORY),
                    ],
                    effective_date=date(2020, 1, 1),
                    certification_ids=["CERT_A"],
                    document_ids=["DOC_A"],
                    test_ids=["RESIDUE_T"],
                ),
                Regulation(
                    regulation_id="REG_ORG",
                    regulation_name="Testland Organic Rules",
                    regulatory_body="Testland Organic Board",
                    country_code="XX",
                    regulation_type=RegulationType.ORGANIC,
                    mandatory=True,
                    description="Organic equivalence",
                    effective_date=date(2020, 1, 1),
                    organic_only=True,
                    certification_ids=["CERT_ORG"],
                ),
            ],
            accredited_labs=[_lab("LAB_X1", 300, 5, 4.5), _lab("LAB_X2", 250, 7, 4.0)],
            strictness=3.0,
            fixed_costs={CostCategory.CONSULTANT_FEES: 200},
            inspection_fee=100,
            contingency_rate=0.1,
            perishable_crops=["mango"],
        ),
        MarketProfile(
            country_code="YY",
            market_name="Emptyland",
            crop_types=["coffee"],
            strictness=1.0,
            contingency_rate=0.0,
        ),
    ]
    return StaticCatalog(markets=markets, certifications=certifications, documents=documents, tests=tests)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def catalog():
    return build_fixture_catalog()


@pytest.fixture
def catalog_document(catalog):
    """The fixture catalog in the JSON file format read by the catalog loader."""
    return {
        "markets": [catalog.get_market(code).model_dump(mode="json") for code in catalog.markets()],
        "certifications": [
            catalog.get_certification_template(cid).model_dump(mode="json") for cid in ("CERT_A", "CERT_ORG")
        ],
        "documents": [catalog.get_document_template(did).model_dump(mode="json") for did in ("DOC_A", "DOC_V")],
        "tests": [catalog.get_test_template("RESIDUE_T").model_dump(mode="json")],
    }


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def engine(catalog, settings, clock):
    return ComplianceEngine(store=InMemoryComplianceStore(), catalog=catalog, settings=settings, clock=clock)


@pytest.fixture
def batch():
    return BatchDescriptor(batch_id="BATCH-001", crop_type="coffee", origin_country="KE", quantity_kg=5000)
