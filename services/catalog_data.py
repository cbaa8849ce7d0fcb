# WORKFLOW: Built-in catalog tables for supported destination markets.
# Used by: create_default_catalog(), bootstrap validation, tests
# Tables:
# 1. DEFAULT_CERTIFICATIONS - Certification templates (fees, lead times, validity)
# 2. DEFAULT_DOCUMENTS - Export document templates
# 3. DEFAULT_TESTS - Lab test templates with regulatory limits per market
# 4. DEFAULT_MARKETS - Market profiles for US, DE (EU) and GB
#
# Limits follow the published maximum residue / contaminant levels of each market.
# A JSON file with the same shape can replace these tables (see etl/catalog_loader.py).

from datetime import date

from api.schemas.compliance import (
    AccreditedLab,
    CertificationRequirement,
    ContactInfo,
    CostCategory,
    EnforcementLevel,
    Regulation,
    RegulationRequirement,
    RegulationType,
    SamplingRequirement,
    TestingParameter,
    TestType,
)
from services.catalog import DocumentTemplate, MarketProfile, TestTemplate


DEFAULT_CERTIFICATIONS = [
    CertificationRequirement(
        certification_id="GLOBAL_GAP",
        certification_name="GlobalGAP Certification",
        issuing_authority="GlobalGAP c/o FoodPLUS GmbH",
        validity_period_months=12,
        renewal_requirements=["Annual audit", "Compliance maintenance"],
        cost_estimate=2500,
        processing_time_days=45,
        prerequisites=["Farm registration", "Initial assessment"],
        documentation_required=["Farm records", "Traceability documents"],
        inspection_required=True,
        annual_audit_required=True,
        chain_of_custody_required=True,
    ),
    CertificationRequirement(
        certification_id="HACCP_CERT",
        certification_name="HACCP System Certification",
        issuing_authority="Accredited certification body (ISO/IEC 17065)",
        validity_period_months=36,
        renewal_requirements=["Surveillance audit every 12 months"],
        cost_estimate=1800,
        processing_time_days=30,
        prerequisites=["HACCP plan", "Prerequisite programmes"],
        documentation_required=["HACCP plan", "Verification records"],
        inspection_required=True,
        annual_audit_required=True,
    ),
    CertificationRequirement(
        certification_id="USDA_NOP",
        certification_name="USDA National Organic Program Certification",
        issuing_authority="USDA-accredited organic certifier",
        validity_period_months=12,
        renewal_requirements=["Annual inspection", "Updated organic system plan"],
        cost_estimate=1500,
        processing_time_days=60,
        prerequisites=["Organic system plan", "36-month land history"],
        documentation_required=["Organic system plan", "Input records"],
        inspection_required=True,
        annual_audit_required=True,
        chain_of_custody_required=True,
    ),
    CertificationRequirement(
        certification_id="EU_ORGANIC",
        certification_name="EU Organic Certification (Regulation 2018/848)",
        issuing_authority="EU-recognised control body",
        validity_period_months=12,
        renewal_requirements=["Annual control visit"],
        cost_estimate=1700,
        processing_time_days=60,
        prerequisites=["Conversion period completed"],
        documentation_required=["Organic management plan", "Input records"],
        inspection_required=True,
        annual_audit_required=True,
        chain_of_custody_required=True,
    ),
    CertificationRequirement(
        certification_id="BRCGS_FOOD",
        certification_name="BRCGS Food Safety Certification",
        issuing_authority="BRCGS-approved certification body",
        validity_period_months=12,
        renewal_requirements=["Annual unannounced audit"],
        cost_estimate=3000,
        processing_time_days=40,
        prerequisites=["Food safety plan", "Site standards"],
        documentation_required=["Food safety plan", "Internal audit records"],
        inspection_required=True,
        annual_audit_required=True,
    ),
]


DEFAULT_DOCUMENTS = [
    DocumentTemplate(
        document_id="PHYTO_CERT",
        document_type="Phytosanitary Certificate",
        document_name="International Phytosanitary Certificate",
        required_by=["Importing country plant protection service"],
        template_available=True,
        requires_third_party_verification=True,
        validity_period_days=14,
        preparation_days=10,
        submission_deadline_days=30,
        cost_estimate=150,
        language_requirements=["English"],
        format_requirements=["Original paper document", "Official stamps"],
    ),
    DocumentTemplate(
        document_id="CERT_OF_ORIGIN",
        document_type="Certificate of Origin",
        document_name="Non-preferential Certificate of Origin",
        required_by=["Importing country customs"],
        template_available=True,
        requires_third_party_verification=True,
        preparation_days=5,
        submission_deadline_days=30,
        cost_estimate=80,
        language_requirements=["English"],
        format_requirements=["Chamber of commerce stamp"],
    ),
    DocumentTemplate(
        document_id="COMMERCIAL_INVOICE",
        document_type="Commercial Invoice",
        document_name="Commercial Invoice",
        required_by=["Importing country customs", "Buyer"],
        template_available=True,
        auto_generated=True,
        preparation_days=2,
        submission_deadline_days=21,
        language_requirements=["English"],
        format_requirements=["Signed PDF"],
    ),
    DocumentTemplate(
        document_id="FDA_PRIOR_NOTICE",
        document_type="Prior Notice",
        document_name="FDA Prior Notice of Imported Food",
        required_by=["U.S. Food and Drug Administration"],
        auto_generated=True,
        preparation_days=2,
        submission_deadline_days=21,
        language_requirements=["English"],
        format_requirements=["Electronic submission via PNSI"],
    ),
    DocumentTemplate(
        document_id="CHED_PP",
        document_type="Common Health Entry Document",
        document_name="CHED-PP (Plants and Plant Products)",
        required_by=["EU border control post"],
        template_available=True,
        requires_third_party_verification=True,
        preparation_days=3,
        submission_deadline_days=25,
        cost_estimate=60,
        language_requirements=["English", "German"],
        format_requirements=["TRACES NT submission"],
    ),
    DocumentTemplate(
        document_id="ORGANIC_COI",
        document_type="Certificate of Inspection",
        document_name="Organic Certificate of Inspection",
        required_by=["Organic control authority"],
        template_available=True,
        requires_third_party_verification=True,
        preparation_days=7,
        submission_deadline_days=30,
        cost_estimate=120,
        language_requirements=["English"],
        format_requirements=["TRACES NT submission"],
    ),
    DocumentTemplate(
        document_id="IPAFFS_NOTIFICATION",
        document_type="Import Pre-notification",
        document_name="IPAFFS Import Notification",
        required_by=["UK Animal and Plant Health Agency"],
        auto_generated=True,
        preparation_days=2,
        submission_deadline_days=21,
        language_requirements=["English"],
        format_requirements=["Electronic submission via IPAFFS"],
    ),
]


_STANDARD_SAMPLING = SamplingRequirement(
    sample_size_kg=2,
    sampling_method="Random sampling from different lots",
    sampling_frequency="Per shipment",
    sampling_locations=["Storage facility", "Loading point"],
    sample_preservation="Frozen at -18°C",
    chain_of_custody_required=True,
    sampling_certification_required=True,
)

_DRY_SAMPLING = SamplingRequirement(
    sample_size_kg=10,
    sampling_method="Incremental sampling per EU Regulation 401/2006",
    sampling_frequency="Per lot",
    sampling_locations=["Warehouse"],
    sample_preservation="Dry, dark, ambient temperature",
    chain_of_custody_required=True,
)


DEFAULT_TESTS = [
    TestTemplate(
        test_id="PESTICIDE_RESIDUE_US",
        test_name="Pesticide Residue Analysis (EPA tolerances)",
        test_type=TestType.CHEMICAL_RESIDUE,
        required_by=["FDA", "EPA"],
        sampling_requirements=_STANDARD_SAMPLING,
        testing_parameters=[
            TestingParameter(
                parameter_name="Glyphosate",
                parameter_code="GLY",
                unit="mg/kg",
                detection_limit=0.01,
                quantification_limit=0.05,
                regulatory_limit=5.0,
                test_method="LC-MS/MS",
                reference_standard="EPA Method 547",
                critical_parameter=True,
            ),
            TestingParameter(
                parameter_name="Chlorpyrifos",
                parameter_code="CPF",
                unit="mg/kg",
                detection_limit=0.005,
                quantification_limit=0.01,
                regulatory_limit=0.1,
                test_method="GC-MS/MS",
                reference_standard="AOAC 2007.01",
                critical_parameter=False,
            ),
        ],
        cost_estimate=800,
        turnaround_time_days=10,
    ),
    TestTemplate(
        test_id="PESTICIDE_RESIDUE_EU",
        test_name="Pesticide Residue Analysis (EU MRLs)",
        test_type=TestType.CHEMICAL_RESIDUE,
        required_by=["EU Regulation 396/2005"],
        sampling_requirements=_STANDARD_SAMPLING,
        testing_parameters=[
            TestingParameter(
                parameter_name="Glyphosate",
                parameter_code="GLY",
                unit="mg/kg",
                detection_limit=0.01,
                quantification_limit=0.05,
                regulatory_limit=0.1,
                test_method="LC-MS/MS",
                reference_standard="EN 15662",
                critical_parameter=True,
            ),
            TestingParameter(
                parameter_name="Chlorpyrifos",
                parameter_code="CPF",
                unit="mg/kg",
                detection_limit=0.005,
                quantification_limit=0.01,
                regulatory_limit=0.01,
                test_method="GC-MS/MS",
                reference_standard="EN 15662",
                critical_parameter=True,
            ),
        ],
        cost_estimate=950,
        turnaround_time_days=10,
    ),
    TestTemplate(
        test_id="AFLATOXIN_US",
        test_name="Total Aflatoxin Screening",
        test_type=TestType.CONTAMINANT,
        required_by=["FDA Compliance Policy Guide 555.400"],
        sampling_requirements=_DRY_SAMPLING,
        testing_parameters=[
            TestingParameter(
                parameter_name="Total aflatoxins",
                parameter_code="AFT",
                unit="µg/kg",
                detection_limit=0.5,
                quantification_limit=1.0,
                regulatory_limit=20.0,
                test_method="HPLC-FLD",
                reference_standard="AOAC 991.31",
                critical_parameter=True,
            ),
        ],
        cost_estimate=350,
        turnaround_time_days=5,
    ),
    TestTemplate(
        test_id="AFLATOXIN_EU",
        test_name="Aflatoxin B1 and Total Aflatoxins",
        test_type=TestType.CONTAMINANT,
        required_by=["EU Regulation 2023/915"],
        sampling_requirements=_DRY_SAMPLING,
        testing_parameters=[
            TestingParameter(
                parameter_name="Aflatoxin B1",
                parameter_code="AFB1",
                unit="µg/kg",
                detection_limit=0.1,
                quantification_limit=0.2,
                regulatory_limit=2.0,
                test_method="HPLC-FLD",
                reference_standard="EN 14123",
                critical_parameter=True,
            ),
            TestingParameter(
                parameter_name="Total aflatoxins",
                parameter_code="AFT",
                unit="µg/kg",
                detection_limit=0.2,
                quantification_limit=0.5,
                regulatory_limit=4.0,
                test_method="HPLC-FLD",
                reference_standard="EN 14123",
                critical_parameter=True,
            ),
        ],
        cost_estimate=420,
        turnaround_time_days=5,
    ),
    TestTemplate(
        test_id="MICROBIOLOGICAL",
        test_name="Microbiological Safety Panel",
        test_type=TestType.MICROBIOLOGICAL,
        required_by=["Importing country food authority"],
        sampling_requirements=_STANDARD_SAMPLING,
        testing_parameters=[
            TestingParameter(
                parameter_name="Salmonella spp.",
                parameter_code="SAL",
                unit="detected/25g",
                detection_limit=1,
                quantification_limit=1,
                regulatory_limit=0,
                test_method="ISO 6579-1",
                reference_standard="ISO 6579-1:2017",
                critical_parameter=True,
            ),
            TestingParameter(
                parameter_name="E. coli",
                parameter_code="ECO",
                unit="cfu/g",
                detection_limit=10,
                quantification_limit=10,
                regulatory_limit=100,
                test_method="ISO 16649-2",
                reference_standard="ISO 16649-2:2001",
                critical_parameter=False,
            ),
        ],
        cost_estimate=400,
        turnaround_time_days=5,
    ),
    TestTemplate(
        test_id="HEAVY_METALS",
        test_name="Heavy Metals Screening",
        test_type=TestType.CONTAMINANT,
        required_by=["Importing country food authority"],
        sampling_requirements=_STANDARD_SAMPLING,
        testing_parameters=[
            TestingParameter(
                parameter_name="Lead",
                parameter_code="PB",
                unit="mg/kg",
                detection_limit=0.005,
                quantification_limit=0.01,
                regulatory_limit=0.1,
                test_method="ICP-MS",
                reference_standard="EN 15763",
                critical_parameter=True,
            ),
            TestingParameter(
                parameter_name="Cadmium",
                parameter_code="CD",
                unit="mg/kg",
                detection_limit=0.002,
                quantification_limit=0.005,
                regulatory_limit=0.05,
                test_method="ICP-MS",
                reference_standard="EN 15763",
                critical_parameter=False,
            ),
        ],
        cost_estimate=300,
        turnaround_time_days=7,
    ),
]


def _lab(lab_id, name, number, location, turnaround, costs, rating, specializations):
    return AccreditedLab(
        lab_id=lab_id,
        lab_name=name,
        accreditation_body="ISO/IEC 17025",
        accreditation_number=number,
        location=location,
        specializations=specializations,
        contact_info=ContactInfo(
            email=f"testing@{lab_id.lower()}.example",
            phone="+1-555-0123",
            address=location,
            contact_person="Laboratory Manager",
            business_hours="8:00 AM - 6:00 PM UTC",
        ),
        turnaround_times=turnaround,
        cost_structure=costs,
        quality_rating=rating,
    )


_GLOBAL_LAB = _lab(
    "LAB_001",
    "International Food Testing Laboratory",
    "LAB-17025-001",
    "Global Network",
    {TestType.CHEMICAL_RESIDUE: 7, TestType.MICROBIOLOGICAL: 5, TestType.NUTRITIONAL: 10, TestType.CONTAMINANT: 6},
    {TestType.CHEMICAL_RESIDUE: 800, TestType.MICROBIOLOGICAL: 400, TestType.NUTRITIONAL: 300, TestType.CONTAMINANT: 380},
    4.8,
    ["Pesticide Residue", "Heavy Metals", "Microbiological", "Mycotoxins"],
)


DEFAULT_MARKETS = [
    MarketProfile(
        country_code="US",
        market_name="United States",
        regulations=[
            Regulation(
                regulation_id="FDA_FSMA",
                regulation_name="FDA Food Safety Modernization Act",
                regulatory_body="U.S. Food and Drug Administration",
                country_code="US",
                regulation_type=RegulationType.FOOD_SAFETY,
                mandatory=True,
                description="Food safety requirements for imported agricultural products",
                requirements=[
                    RegulationRequirement(
                        requirement_id="HACCP",
                        requirement_type="Process Control",
                        description="Implement HACCP system",
                        acceptance_criteria="HACCP plan verified by FDA",
                        documentation_needed=["HACCP Plan", "Verification Records"],
                        enforcement_level=EnforcementLevel.MANDATORY,
                    ),
                    RegulationRequirement(
                        requirement_id="FSVP",
                        requirement_type="Supplier Verification",
                        description="Foreign Supplier Verification Program records for the importer",
                        acceptance_criteria="FSVP importer identified and records available",
                        documentation_needed=["Supplier hazard analysis"],
                        enforcement_level=EnforcementLevel.CRITICAL,
                    ),
                    RegulationRequirement(
                        requirement_id="FOOD_DEFENSE",
                        requirement_type="Food Defense",
                        description="Document a food defense plan",
                        acceptance_criteria="Plan available on request",
                        enforcement_level=EnforcementLevel.ADVISORY,
                    ),
                ],
                penalties_for_non_compliance=["Product detention", "Import refusal", "Facility registration suspension"],
                effective_date=date(2024, 1, 1),
                certification_ids=["GLOBAL_GAP"],
                document_ids=["FDA_PRIOR_NOTICE"],
                test_ids=["PESTICIDE_RESIDUE_US"],
            ),
            Regulation(
                regulation_id="USDA_APHIS_PPQ",
                regulation_name="APHIS Plant Protection and Quarantine (7 CFR 319)",
                regulatory_body="USDA Animal and Plant Health Inspection Service",
                country_code="US",
                regulation_type=RegulationType.PHYTOSANITARY,
                mandatory=True,
                description="Entry conditions for fruits, vegetables and plant products",
                requirements=[
                    RegulationRequirement(
                        requirement_id="PEST_FREE",
                        requirement_type="Phytosanitary",
                        description="Consignment inspected and free of quarantine pests",
                        acceptance_criteria="Phytosanitary certificate issued by origin NPPO",
                        documentation_needed=["Phytosanitary Certificate"],
                        enforcement_level=EnforcementLevel.MANDATORY,
                    ),
                ],
                penalties_for_non_compliance=["Consignment destruction", "Re-export order"],
                effective_date=date(2024, 1, 1),
                document_ids=["PHYTO_CERT"],
            ),
            Regulation(
                regulation_id="FDA_AFLATOXIN",
                regulation_name="FDA Aflatoxin Action Levels",
                regulatory_body="U.S. Food and Drug Administration",
                country_code="US",
                regulation_type=RegulationType.FOOD_SAFETY,
                mandatory=True,
                description="Action levels for aflatoxins in nuts, grains and seeds",
                requirements=[
                    RegulationRequirement(
                        requirement_id="AFLATOXIN_CONTROL",
                        requirement_type="Contaminant Control",
                        description="Aflatoxin sampling plan and drying controls",
                        acceptance_criteria="Total aflatoxins below 20 µg/kg",
                        testing_method="HPLC-FLD",
                        enforcement_level=EnforcementLevel.CRITICAL,
                    ),
                ],
                penalties_for_non_compliance=["Import alert listing"],
                effective_date=date(2024, 1, 1),
                crop_types=["maize", "groundnut", "sesame", "cashew"],
                test_ids=["AFLATOXIN_US"],
            ),
            Regulation(
                regulation_id="USDA_ORGANIC",
                regulation_name="USDA Organic Regulations",
                regulatory_body="U.S. Department of Agriculture",
                country_code="US",
                regulation_type=RegulationType.ORGANIC,
                mandatory=False,
                description="Organic certification requirements for premium market access",
                requirements=[],
                penalties_for_non_compliance=["Loss of organic premium", "Label violation fines"],
                effective_date=date(2024, 1, 1),
                organic_only=True,
                certification_ids=["USDA_NOP"],
                document_ids=["ORGANIC_COI"],
            ),
        ],
        default_documents=["COMMERCIAL_INVOICE", "CERT_OF_ORIGIN"],
        accredited_labs=[
            _GLOBAL_LAB,
            _lab(
                "LAB_US_002",
                "Midwest Agricultural Analytics",
                "A2LA-4411.01",
                "Kansas City, MO",
                {TestType.CHEMICAL_RESIDUE: 6, TestType.CONTAMINANT: 4},
                {TestType.CHEMICAL_RESIDUE: 750, TestType.CONTAMINANT: 320},
                4.5,
                ["Pesticide Residue", "Mycotoxins"],
            ),
        ],
        strictness=3.0,
        fixed_costs={
            CostCategory.CONSULTANT_FEES: 2000,
            CostCategory.TRAINING_COSTS: 500,
        },
        inspection_fee=750,
        perishable_crops=["avocado", "mango", "tomato", "banana", "pineapple"],
    ),
    MarketProfile(
        country_code="DE",
        market_name="Germany (European Union)",
        regulations=[
            Regulation(
                regulation_id="EU_GFL_178_2002",
                regulation_name="EU General Food Law (Regulation 178/2002)",
                regulatory_body="European Commission / BVL",
                country_code="DE",
                regulation_type=RegulationType.FOOD_SAFETY,
                mandatory=True,
                description="Food safety, traceability and operator responsibility",
                requirements=[
                    RegulationRequirement(
                        requirement_id="TRACEABILITY",
                        requirement_type="Traceability",
                        description="One-step-back / one-step-forward traceability records",
                        acceptance_criteria="Lot-level traceability demonstrated",
                        documentation_needed=["Traceability records"],
                        enforcement_level=EnforcementLevel.MANDATORY,
                    ),
                    RegulationRequirement(
                        requirement_id="HACCP",
                        requirement_type="Process Control",
                        description="Implement HACCP-based procedures (Regulation 852/2004)",
                        acceptance_criteria="HACCP plan audited",
                        documentation_needed=["HACCP Plan"],
                        enforcement_level=EnforcementLevel.MANDATORY,
                    ),
                ],
                penalties_for_non_compliance=["RASFF notification", "Border rejection"],
                effective_date=date(2024, 1, 1),
                certification_ids=["GLOBAL_GAP", "HACCP_CERT"],
                test_ids=["MICROBIOLOGICAL"],
            ),
            Regulation(
                regulation_id="EU_MRL_396_2005",
                regulation_name="EU Maximum Residue Levels (Regulation 396/2005)",
                regulatory_body="European Commission",
                country_code="DE",
                regulation_type=RegulationType.QUALITY,
                mandatory=True,
                description="Maximum residue levels of pesticides in food and feed",
                requirements=[
                    RegulationRequirement(
                        requirement_id="MRL_COMPLIANCE",
                        requirement_type="Residue Control",
                        description="Residues below EU MRLs for every active substance",
                        acceptance_criteria="Accredited lab report below MRLs",
                        testing_method="LC-MS/MS, GC-MS/MS",
                        enforcement_level=EnforcementLevel.CRITICAL,
                    ),
                ],
                penalties_for_non_compliance=["Increased official controls", "Border rejection"],
                effective_date=date(2024, 1, 1),
                test_ids=["PESTICIDE_RESIDUE_EU"],
            ),
            Regulation(
                regulation_id="EU_CONTAMINANTS_2023_915",
                regulation_name="EU Contaminants in Food (Regulation 2023/915)",
                regulatory_body="European Commission",
                country_code="DE",
                regulation_type=RegulationType.FOOD_SAFETY,
                mandatory=True,
                description="Maximum levels for mycotoxins and heavy metals",
                requirements=[
                    RegulationRequirement(
                        requirement_id="MYCOTOXIN_LIMITS",
                        requirement_type="Contaminant Control",
                        description="Aflatoxin levels within EU maximum levels",
                        acceptance_criteria="Aflatoxin B1 below 2 µg/kg",
                        enforcement_level=EnforcementLevel.CRITICAL,
                    ),
                ],
                penalties_for_non_compliance=["Border rejection", "Destruction of consignment"],
                effective_date=date(2024, 1, 1),
                crop_types=["maize", "groundnut", "sesame", "cashew", "coffee", "cocoa"],
                test_ids=["AFLATOXIN_EU", "HEAVY_METALS"],
            ),
            Regulation(
                regulation_id="EU_PLANT_HEALTH_2016_2031",
                regulation_name="EU Plant Health Law (Regulation 2016/2031)",
                regulatory_body="European Commission / JKI",
                country_code="DE",
                regulation_type=RegulationType.PHYTOSANITARY,
                mandatory=True,
                description="Protective measures against pests of plants",
                requirements=[
                    RegulationRequirement(
                        requirement_id="PHYTO_INSPECTION",
                        requirement_type="Phytosanitary",
                        description="Pre-export phytosanitary inspection by origin NPPO",
                        acceptance_criteria="Phytosanitary certificate and CHED-PP lodged",
                        documentation_needed=["Phytosanitary Certificate", "CHED-PP"],
                        enforcement_level=EnforcementLevel.MANDATORY,
                    ),
                ],
                penalties_for_non_compliance=["Interception", "Destruction of consignment"],
                effective_date=date(2024, 1, 1),
                document_ids=["PHYTO_CERT", "CHED_PP"],
            ),
            Regulation(
                regulation_id="EU_ORGANIC_2018_848",
                regulation_name="EU Organic Production (Regulation 2018/848)",
                regulatory_body="European Commission",
                country_code="DE",
                regulation_type=RegulationType.ORGANIC,
                mandatory=False,
                description="Organic production and labelling of organic products",
                requirements=[
                    RegulationRequirement(
                        requirement_id="ORGANIC_COI_LODGED",
                        requirement_type="Organic Control",
                        description="Certificate of inspection lodged in TRACES before release",
                        acceptance_criteria="COI endorsed by competent authority",
                        documentation_needed=["Certificate of Inspection"],
                        enforcement_level=EnforcementLevel.MANDATORY,
                    ),
                ],
                penalties_for_non_compliance=["Loss of organic status"],
                effective_date=date(2024, 1, 1),
                organic_only=True,
                certification_ids=["EU_ORGANIC"],
                document_ids=["ORGANIC_COI"],
            ),
        ],
        default_documents=["COMMERCIAL_INVOICE", "CERT_OF_ORIGIN"],
        accredited_labs=[
            _GLOBAL_LAB,
            _lab(
                "LAB_DE_002",
                "Hamburg Food Safety Institute",
                "D-PL-14253-01-00",
                "Hamburg, Germany",
                {TestType.CHEMICAL_RESIDUE: 8, TestType.CONTAMINANT: 5, TestType.MICROBIOLOGICAL: 4},
                {TestType.CHEMICAL_RESIDUE: 900, TestType.CONTAMINANT: 400, TestType.MICROBIOLOGICAL: 350},
                4.9,
                ["Pesticide Residue", "Mycotoxins", "Microbiological"],
            ),
        ],
        strictness=4.0,
        risk_thresholds={"critical": 4.0, "high": 2.5, "medium": 1.0},
        fixed_costs={
            CostCategory.CONSULTANT_FEES: 2500,
            CostCategory.TRAINING_COSTS: 600,
        },
        inspection_fee=900,
        perishable_crops=["avocado", "mango", "tomato", "banana", "pineapple"],
    ),
    MarketProfile(
        country_code="GB",
        market_name="United Kingdom",
        crop_types=["coffee", "cocoa", "avocado", "mango", "cashew"],
        regulations=[
            Regulation(
                regulation_id="UK_FOOD_SAFETY_ACT",
                regulation_name="UK Retained General Food Law",
                regulatory_body="Food Standards Agency",
                country_code="GB",
                regulation_type=RegulationType.FOOD_SAFETY,
                mandatory=True,
                description="Food safety and traceability for imports into Great Britain",
                requirements=[
                    RegulationRequirement(
                        requirement_id="HACCP",
                        requirement_type="Process Control",
                        description="Implement HACCP-based procedures",
                        acceptance_criteria="HACCP plan audited",
                        documentation_needed=["HACCP Plan"],
                        enforcement_level=EnforcementLevel.MANDATORY,
                    ),
                ],
                penalties_for_non_compliance=["Border rejection"],
                effective_date=date(2024, 1, 1),
                certification_ids=["BRCGS_FOOD"],
                test_ids=["PESTICIDE_RESIDUE_EU"],
            ),
            Regulation(
                regulation_id="UK_PLANT_HEALTH",
                regulation_name="UK Plant Health (Official Controls) Regulations",
                regulatory_body="Animal and Plant Health Agency",
                country_code="GB",
                regulation_type=RegulationType.PHYTOSANITARY,
                mandatory=True,
                description="Phytosanitary import controls for Great Britain",
                requirements=[
                    RegulationRequirement(
                        requirement_id="IPAFFS_PRENOTIFY",
                        requirement_type="Pre-notification",
                        description="Pre-notify consignment in IPAFFS",
                        acceptance_criteria="IPAFFS notification accepted",
                        enforcement_level=EnforcementLevel.MANDATORY,
                    ),
                ],
                penalties_for_non_compliance=["Consignment hold"],
                effective_date=date(2024, 1, 1),
                document_ids=["PHYTO_CERT", "IPAFFS_NOTIFICATION"],
            ),
        ],
        default_documents=["COMMERCIAL_INVOICE"],
        accredited_labs=[_GLOBAL_LAB],
        strictness=3.5,
        fixed_costs={
            CostCategory.CONSULTANT_FEES: 1800,
            CostCategory.TRAINING_COSTS: 400,
        },
        inspection_fee=800,
        perishable_crops=["avocado", "mango"],
    ),
]
