# WORKFLOW: ETL package for regulation catalog files.
# Used by: API startup, bootstrap script
# Modules include:
# 1. validators.py - Validate catalog data consistency and integrity (pandas)
# 2. catalog_loader.py - Load validated JSON catalogs, export the built-in tables
#
# ETL flow: Catalog JSON -> Validate -> Pydantic models -> StaticCatalog
# This ensures the engine only serves regulation data that passed validation.

"""
ETL package for Export Compliance API catalog data.
"""
