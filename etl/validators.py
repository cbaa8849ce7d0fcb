# WORKFLOW: Data validation for catalog files before they are loaded.
# Used by: Catalog loader, bootstrap script, data quality assurance
# Functions:
# 1. validate_markets() - Country codes, strictness and contingency ranges
# 2. validate_regulations() - Ids, enforcement levels, market membership
# 3. validate_labs() - Accreditation data, quality ratings, price/turnaround tables
# 4. validate_templates() - Certification, document and test templates
# 5. validate_catalog_references() - Cross-reference regulation and market ids to templates
# 6. validate_catalog_data() - Run every check on a raw catalog document
# 7. generate_validation_report() - Create validation summary
#
# Validation flow: Raw catalog JSON -> DataFrames -> Schema rules -> Cross-references -> Report
# This identifies data issues before a catalog can answer regulation lookups.

"""
Data validation for regulation catalog files.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Tuple

import pandas as pd

from api.schemas.compliance import EnforcementLevel, TestType

logger = logging.getLogger(__name__)

CATALOG_SECTIONS = ("markets", "certifications", "documents", "tests")


def validate_country_code(country_code: str) -> bool:
    """
    Validate country code format.

    Args:
        country_code: Country code to validate

    Returns:
        True if valid, False otherwise
    """
    if not country_code or not isinstance(country_code, str):
        return False

    # Country codes should be 2-3 uppercase letters
    return re.match(r'^[A-Z]{2,3}$', country_code.strip()) is not None


def _duplicates(df: pd.DataFrame, column: str) -> List[str]:
    return df.loc[df[column].duplicated(), column].astype(str).tolist()


def validate_markets(df: pd.DataFrame) -> Tuple[bool, List[str]]:
    """
    Validate market profile data.

    Args:
        df: DataFrame with one row per market

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    required_columns = ['country_code', 'market_name']
    missing_columns = [col for col in required_columns if col not in df.columns]
    if missing_columns:
        errors.append(f"Missing required market columns: {missing_columns}")
        return False, errors

    invalid_codes = [
        f"Row {idx}: {row['country_code']}"
        for idx, row in df.iterrows()
        if not validate_country_code(str(row['country_code']))
    ]
    if invalid_codes:
        errors.append(f"Invalid country codes: {invalid_codes[:10]}")

    duplicates = _duplicates(df, 'country_code')
    if duplicates:
        errors.append(f"Duplicate markets: {duplicates}")

    if 'strictness' in df.columns:
        invalid = df[(df['strictness'] < 0) | (df['strictness'] > 5)]
        if not invalid.empty:
            errors.append(f"Strictness outside 0-5 in {len(invalid)} markets")

    if 'contingency_rate' in df.columns:
        invalid = df[(df['contingency_rate'] < 0) | (df['contingency_rate'] > 1)]
        if not invalid.empty:
            errors.append(f"Contingency rate outside 0-1 in {len(invalid)} markets")

    logger.info(f"Markets validation: {len(errors)} errors found")
    return len(errors) == 0, errors


def validate_regulations(df: pd.DataFrame) -> Tuple[bool, List[str]]:
    """
    Validate flattened regulation requirement rows.

    Args:
        df: DataFrame with one row per (market, regulation, requirement)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []
    if df.empty:
        logger.info("Regulations validation: no regulations")
        return True, errors

    empty_ids = df[df['regulation_id'].isna() | (df['regulation_id'] == '')]
    if not empty_ids.empty:
        errors.append(f"Empty regulation ids in {len(empty_ids)} rows")

    valid_levels = [level.value for level in EnforcementLevel]
    requirements = df[df['requirement_id'].notna()]
    invalid_levels = requirements[~requirements['enforcement_level'].isin(valid_levels)]
    if not invalid_levels.empty:
        errors.append(f"Invalid enforcement levels: {invalid_levels['enforcement_level'].unique().tolist()}")

    mismatched = df[df['country_code'] != df['market']]
    if not mismatched.empty:
        errors.append(
            f"Regulations filed under another market: {mismatched['regulation_id'].unique().tolist()}"
        )

    duplicate_requirements = requirements[
        requirements.duplicated(subset=['market', 'regulation_id', 'requirement_id'])
    ]
    if not duplicate_requirements.empty:
        errors.append(f"Duplicate requirement ids in {len(duplicate_requirements)} rows")

    logger.info(f"Regulations validation: {len(errors)} errors found")
    return len(errors) == 0, errors


def validate_labs(df: pd.DataFrame) -> Tuple[bool, List[str]]:
    """
    Validate accredited lab data.

    Args:
        df: DataFrame with one row per (market, lab, test type)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []
    if df.empty:
        logger.info("Labs validation: no labs")
        return True, errors

    invalid_ratings = df[(df['quality_rating'] < 0) | (df['quality_rating'] > 5)]
    if not invalid_ratings.empty:
        errors.append(f"Quality rating outside 0-5 for labs: {invalid_ratings['lab_id'].unique().tolist()}")

    priced = df[df['test_type'].notna()]
    valid_types = [t.value for t in TestType]
    invalid_types = priced[~priced['test_type'].isin(valid_types)]
    if not invalid_types.empty:
        errors.append(f"Unknown test types in lab tables: {invalid_types['test_type'].unique().tolist()}")

    negative = priced[(priced['cost'] < 0) | (priced['turnaround_days'] < 0)]
    if not negative.empty:
        errors.append(f"Negative cost or turnaround for labs: {negative['lab_id'].unique().tolist()}")

    logger.info(f"Labs validation: {len(errors)} errors found")
    return len(errors) == 0, errors


def validate_templates(df: pd.DataFrame, id_column: str, kind: str) -> Tuple[bool, List[str]]:
    """
    Validate certification, document or test templates.

    Args:
        df: DataFrame with one row per template
        id_column: Id column name
        kind: Template kind used in messages

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []
    if df.empty:
        return True, errors
    if id_column not in df.columns:
        return False, [f"Missing {kind} id column: {id_column}"]

    duplicates = _duplicates(df, id_column)
    if duplicates:
        errors.append(f"Duplicate {kind} templates: {duplicates}")

    if 'cost_estimate' in df.columns:
        negative = df[df['cost_estimate'] < 0]
        if not negative.empty:
            errors.append(f"Negative cost estimates for {kind} templates: {negative[id_column].tolist()}")

    if 'validity_period_months' in df.columns:
        invalid = df[df['validity_period_months'].isna() | (df['validity_period_months'] <= 0)]
        if not invalid.empty:
            errors.append(f"Non-positive validity for {kind} templates: {invalid[id_column].tolist()}")

    if 'parameter_count' in df.columns:
        empty = df[df['parameter_count'] == 0]
        if not empty.empty:
            errors.append(f"{kind} templates without parameters: {empty[id_column].tolist()}")

    logger.info(f"{kind.capitalize()} templates validation: {len(errors)} errors found")
    return len(errors) == 0, errors


def validate_catalog_references(frames: Dict[str, pd.DataFrame]) -> Tuple[bool, List[str]]:
    """
    Validate that every referenced template id exists.

    Args:
        frames: DataFrames built by catalog_frames()

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []
    references = frames['references']
    if references.empty:
        return True, errors

    known = {
        'certification': set(frames['certifications'].get('certification_id', pd.Series(dtype=str))),
        'document': set(frames['documents'].get('document_id', pd.Series(dtype=str))),
        'test': set(frames['tests'].get('test_id', pd.Series(dtype=str))),
    }
    for kind, ids in known.items():
        referenced = set(references.loc[references['kind'] == kind, 'template_id'])
        missing = sorted(referenced - ids)
        if missing:
            errors.append(f"Unknown {kind} templates referenced: {missing[:10]}")

    logger.info(f"Catalog reference validation: {len(errors)} errors found")
    return len(errors) == 0, errors


def catalog_frames(raw: Dict[str, Any]) -> Dict[str, pd.DataFrame]:
    """
    Flatten a raw catalog document into DataFrames for validation.

    Args:
        raw: Catalog document with markets, certifications, documents and tests

    Returns:
        Dictionary of DataFrames
    """
    markets = raw.get('markets', [])
    regulation_rows = []
    lab_rows = []
    reference_rows = []

    for market in markets:
        code = market.get('country_code')
        for regulation in market.get('regulations', []):
            base = {
                'market': code,
                'regulation_id': regulation.get('regulation_id'),
                'country_code': regulation.get('country_code'),
            }
            requirements = regulation.get('requirements', [])
            if not requirements:
                regulation_rows.append({**base, 'requirement_id': None, 'enforcement_level': None})
            for requirement in requirements:
                regulation_rows.append({
                    **base,
                    'requirement_id': requirement.get('requirement_id'),
                    'enforcement_level': requirement.get('enforcement_level'),
                })
            for kind, key in (('certification', 'certification_ids'), ('document', 'document_ids'), ('test', 'test_ids')):
                reference_rows.extend({'kind': kind, 'template_id': t} for t in regulation.get(key, []))

        for kind, key in (('certification', 'default_certifications'), ('document', 'default_documents'), ('test', 'default_tests')):
            reference_rows.extend({'kind': kind, 'template_id': t} for t in market.get(key, []))

        for lab in market.get('accredited_labs', []):
            test_types = set(lab.get('cost_structure', {})) | set(lab.get('turnaround_times', {}))
            if not test_types:
                lab_rows.append({
                    'market': code, 'lab_id': lab.get('lab_id'),
                    'quality_rating': lab.get('quality_rating', 0.0),
                    'test_type': None, 'cost': 0.0, 'turnaround_days': 0,
                })
            for test_type in sorted(test_types):
                lab_rows.append({
                    'market': code,
                    'lab_id': lab.get('lab_id'),
                    'quality_rating': lab.get('quality_rating', 0.0),
                    'test_type': test_type,
                    'cost': lab.get('cost_structure', {}).get(test_type, 0.0),
                    'turnaround_days': lab.get('turnaround_times', {}).get(test_type, 0),
                })

    tests = pd.DataFrame([
        {**{k: v for k, v in t.items() if k != 'testing_parameters'},
         'parameter_count': len(t.get('testing_parameters', []))}
        for t in raw.get('tests', [])
    ])

    return {
        'markets': pd.DataFrame([{k: v for k, v in m.items() if not isinstance(v, (list, dict))} for m in markets]),
        'regulations': pd.DataFrame(
            regulation_rows, columns=['market', 'regulation_id', 'country_code', 'requirement_id', 'enforcement_level']
        ),
        'labs': pd.DataFrame(
            lab_rows, columns=['market', 'lab_id', 'quality_rating', 'test_type', 'cost', 'turnaround_days']
        ),
        'references': pd.DataFrame(reference_rows, columns=['kind', 'template_id']),
        'certifications': pd.DataFrame(raw.get('certifications', [])),
        'documents': pd.DataFrame(raw.get('documents', [])),
        'tests': tests,
    }


def validate_catalog_data(raw: Dict[str, Any]) -> Tuple[bool, Dict[str, Tuple[bool, List[str]]]]:
    """
    Run every catalog check on a raw catalog document.

    Args:
        raw: Catalog document

    Returns:
        Tuple of (overall_valid, per-dataset results)
    """
    missing = [section for section in CATALOG_SECTIONS if section not in raw]
    if missing:
        return False, {'structure': (False, [f"Missing catalog sections: {missing}"])}
    if not raw['markets']:
        return False, {'structure': (False, ["Catalog defines no markets"])}

    frames = catalog_frames(raw)
    results = {
        'markets': validate_markets(frames['markets']),
        'regulations': validate_regulations(frames['regulations']),
        'labs': validate_labs(frames['labs']),
        'certifications': validate_templates(frames['certifications'], 'certification_id', 'certification'),
        'documents': validate_templates(frames['documents'], 'document_id', 'document'),
        'tests': validate_templates(frames['tests'], 'test_id', 'test'),
        'references': validate_catalog_references(frames),
    }
    overall = all(valid for valid, _ in results.values())
    return overall, results


def generate_validation_report(validation_results: Dict[str, Tuple[bool, List[str]]]) -> Dict[str, Any]:
    """
    Generate validation report.

    Args:
        validation_results: Dictionary of validation results

    Returns:
        Validation report dictionary
    """
    report = {
        'timestamp': datetime.now().isoformat(),
        'overall_valid': all(valid for valid, _ in validation_results.values()),
        'datasets': {},
        'summary': {
            'total_datasets': len(validation_results),
            'valid_datasets': sum(1 for valid, _ in validation_results.values() if valid),
            'total_errors': sum(len(errors) for _, errors in validation_results.values()),
        },
    }
    for dataset, (valid, errors) in validation_results.items():
        report['datasets'][dataset] = {'valid': valid, 'error_count': len(errors), 'errors': errors}

    logger.info(
        f"Validation report: {report['summary']['valid_datasets']}/{report['summary']['total_datasets']} "
        f"datasets valid, {report['summary']['total_errors']} errors"
    )
    return report
