# WORKFLOW: Bootstrap script for Export Compliance API setup.
# Used by: Initial setup, catalog refresh, system deployment
# Functions:
# 1. setup_directories() - Create necessary data directories
# 2. validate_catalog() - Validate the built-in or configured catalog file
# 3. export_catalog() - Write the built-in catalog as an editable JSON file
# 4. setup_database() - Initialize database schema when the SQL store is configured
# 5. create_sample_record() - Initialize one sample compliance record
# 6. validate_setup() - Verify all components are working
# 7. run_tests() - Execute test suite to verify functionality
#
# Bootstrap flow: Directories -> Catalog validation -> Database setup -> Sample record -> Validation -> Ready

"""
Bootstrap script for Export Compliance API setup.
"""

import argparse
import logging
import subprocess
import sys
from pathlib import Path
from typing import Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from api.schemas.compliance import BatchDescriptor  # noqa: E402
from core.config import settings  # noqa: E402
from core.exceptions import ComplianceError  # noqa: E402
from db.session import check_db_connection, init_db  # noqa: E402
from db.store import create_store  # noqa: E402
from etl.catalog_loader import export_default_catalog, load_catalog_file  # noqa: E402
from services.catalog import RegulationCatalog, create_default_catalog  # noqa: E402
from services.compliance_engine import ComplianceEngine  # noqa: E402

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    Path('logs').mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('logs/bootstrap.log'),
            logging.StreamHandler()
        ]
    )


def setup_directories() -> None:
    """
    Create necessary data directories if they don't exist.
    """
    for directory in ['data/catalog', 'data/backups', 'logs']:
        Path(directory).mkdir(parents=True, exist_ok=True)
        logger.info(f"Created directory: {directory}")
    logger.info("All directories created successfully")


def validate_catalog(catalog_path: Optional[str] = None) -> RegulationCatalog:
    """
    Load and validate the regulation catalog.

    Args:
        catalog_path: JSON catalog file; the built-in tables are used when omitted

    Returns:
        The loaded catalog
    """
    if catalog_path:
        logger.info(f"Validating catalog file {catalog_path}")
        catalog = load_catalog_file(catalog_path)
    else:
        logger.info("Validating built-in catalog")
        catalog = create_default_catalog()
    logger.info(f"Catalog serves markets: {', '.join(catalog.markets())}")
    return catalog


def export_catalog(output: str) -> None:
    """Write the built-in catalog and re-load it to confirm the file round-trips."""
    path = export_default_catalog(output)
    load_catalog_file(path)
    logger.info(f"Catalog written to {path}")


def setup_database() -> None:
    """
    Initialize database schema and create tables.
    """
    if settings.store_backend != "sql":
        logger.info("In-memory record store configured, skipping database setup")
        return
    logger.info("Setting up database schema")
    init_db()
    logger.info("Database setup completed")


def create_sample_record(catalog: RegulationCatalog) -> None:
    """
    Initialize a sample compliance record so the API has data to show.
    """
    engine = ComplianceEngine(store=create_store(settings.store_backend), catalog=catalog, settings=settings)
    batch = BatchDescriptor(
        batch_id="SAMPLE-BATCH-001",
        crop_type="coffee",
        origin_country="KE",
        farm_id="FARM-001",
        quantity_kg=12000,
    )
    try:
        record = engine.initialize(batch, "US", "SAMPLE-BUYER")
        logger.info(
            f"Created sample record {record.compliance_id} with {len(record.compliance_checklist)} checklist items"
        )
    except ComplianceError as e:
        logger.warning(f"Sample record not created: {e}")


def validate_setup(catalog_path: Optional[str] = None) -> bool:
    """
    Validate that all components are working correctly.

    Returns:
        True if validation passes, False otherwise
    """
    logger.info("Validating setup")

    try:
        validate_catalog(catalog_path)
    except ComplianceError as e:
        logger.error(f"Catalog validation failed: {e}")
        return False

    if settings.store_backend == "sql":
        if not check_db_connection():
            logger.error("Database connection validation failed")
            return False
        logger.info("Database connection validated")

    logger.info("Setup validation completed successfully")
    return True


def run_tests() -> bool:
    """
    Run the test suite to verify functionality.

    Returns:
        True if tests pass, False otherwise
    """
    logger.info("Running test suite")
    result = subprocess.run(
        [sys.executable, '-m', 'pytest', 'tests/', '-v'],
        capture_output=True,
        text=True,
        cwd=project_root
    )
    if result.returncode == 0:
        logger.info("All tests passed")
        return True
    logger.error(f"Tests failed: {result.stdout}")
    return False


def main():
    """
    Main bootstrap function.
    """
    parser = argparse.ArgumentParser(description='Bootstrap Export Compliance API')
    parser.add_argument('--catalog', default=settings.catalog_path, help='JSON catalog file to validate')
    parser.add_argument('--export-catalog', metavar='PATH', help='Write the built-in catalog to PATH')
    parser.add_argument('--skip-tests', action='store_true', help='Skip test execution')
    parser.add_argument('--create-sample', action='store_true', help='Create a sample compliance record')
    parser.add_argument('--validate-only', action='store_true', help='Only validate existing setup')

    args = parser.parse_args()
    setup_logging()

    try:
        logger.info("Starting Export Compliance API bootstrap")

        if args.validate_only:
            if validate_setup(args.catalog):
                logger.info("Validation completed successfully")
                return 0
            logger.error("Validation failed")
            return 1

        setup_directories()

        if args.export_catalog:
            export_catalog(args.export_catalog)

        catalog = validate_catalog(args.catalog)
        setup_database()

        if args.create_sample:
            create_sample_record(catalog)

        if not validate_setup(args.catalog):
            logger.error("Setup validation failed")
            return 1

        if not args.skip_tests and not run_tests():
            logger.error("Test execution failed")
            return 1

        logger.info("Bootstrap completed successfully!")
        return 0

    except Exception as e:
        logger.error(f"Bootstrap failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
