# WORKFLOW: Load and export regulation catalogs as JSON files.
# Used by: API startup (settings.catalog_path), bootstrap script, tests
# Functions:
# 1. read_catalog_document() - Read the raw JSON document from disk
# 2. build_catalog() - Validate a raw document and construct a StaticCatalog
# 3. load_catalog_file() - read + build in one step
# 4. export_default_catalog() - Write the built-in tables in the loadable format
#
# Load flow: JSON file -> pandas validators -> pydantic models -> StaticCatalog
# Any failure surfaces as CatalogDataUnavailableError so the API never starts
# with a half-loaded catalog.

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from pydantic import ValidationError

from api.schemas.compliance import CertificationRequirement
from core.exceptions import CatalogDataUnavailableError
from etl.validators import generate_validation_report, validate_catalog_data
from services.catalog import DocumentTemplate, MarketProfile, StaticCatalog, TestTemplate

logger = logging.getLogger(__name__)


def read_catalog_document(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a raw catalog document.

    Args:
        path: Path to a JSON catalog file

    Returns:
        Parsed catalog document

    Raises:
        CatalogDataUnavailableError: If the file is missing or is not a JSON object
    """
    catalog_path = Path(path)
    if not catalog_path.exists():
        raise CatalogDataUnavailableError(f"Catalog file not found: {catalog_path}")

    try:
        with open(catalog_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogDataUnavailableError(f"Catalog file {catalog_path} is not valid JSON: {e}")

    if not isinstance(raw, dict):
        raise CatalogDataUnavailableError(f"Catalog file {catalog_path} must contain a JSON object")
    return raw


def build_catalog(raw: Dict[str, Any]) -> StaticCatalog:
    """
    Validate a raw catalog document and construct the catalog.

    Args:
        raw: Catalog document with markets, certifications, documents and tests

    Returns:
        StaticCatalog serving the document's data

    Raises:
        CatalogDataUnavailableError: If validation fails
    """
    overall_valid, results = validate_catalog_data(raw)
    if not overall_valid:
        report = generate_validation_report(results)
        errors = [
            error
            for dataset in report['datasets'].values()
            for error in dataset['errors']
        ]
        logger.error(f"Catalog validation failed: {errors}")
        raise CatalogDataUnavailableError(f"Invalid catalog data: {'; '.join(errors)}")

    try:
        return StaticCatalog(
            markets=[MarketProfile.model_validate(m) for m in raw['markets']],
            certifications=[CertificationRequirement.model_validate(c) for c in raw['certifications']],
            documents=[DocumentTemplate.model_validate(d) for d in raw['documents']],
            tests=[TestTemplate.model_validate(t) for t in raw['tests']],
        )
    except ValidationError as e:
        logger.error(f"Catalog model validation failed: {e}")
        raise CatalogDataUnavailableError(f"Invalid catalog data: {e.error_count()} field errors")


def load_catalog_file(path: Union[str, Path]) -> StaticCatalog:
    """Load a validated catalog from a JSON file."""
    catalog = build_catalog(read_catalog_document(path))
    logger.info(f"Loaded catalog from {path}: markets {catalog.markets()}")
    return catalog


def export_default_catalog(path: Union[str, Path]) -> Path:
    """
    Write the built-in catalog tables as a loadable JSON file.

    Args:
        path: Output file path

    Returns:
        Path written
    """
    from services.catalog_data import (
        DEFAULT_CERTIFICATIONS,
        DEFAULT_DOCUMENTS,
        DEFAULT_MARKETS,
        DEFAULT_TESTS,
    )

    document = {
        'markets': [m.model_dump(mode='json') for m in DEFAULT_MARKETS],
        'certifications': [c.model_dump(mode='json') for c in DEFAULT_CERTIFICATIONS],
        'documents': [d.model_dump(mode='json') for d in DEFAULT_DOCUMENTS],
        'tests': [t.model_dump(mode='json') for t in DEFAULT_TESTS],
    }

    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(document, f, indent=2)

    logger.info(f"Exported default catalog to {output_path}")
    return output_path
