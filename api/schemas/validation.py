# WORKFLOW: JSON Schema validation module (hard gate for report and readiness outputs).
# Used by: API endpoints, tests
# Functions:
# 1. validate_report() - Validate a ComplianceReport against its JSON schema
# 2. validate_readiness() - Validate a ReadinessResult against its JSON schema
# 3. get_validation_errors() - Get detailed validation errors without raising
#
# Validation flow: Response generation -> model_dump(mode="json") -> Schema validation -> Pass/Fail
# Schemas are generated from the pydantic output models, so the wire payload is checked
# against the same contract the models declare. No output is returned without passing.

from typing import Any, Dict, Optional, Type
import logging

import jsonschema
from pydantic import BaseModel

from api.schemas.response import ComplianceReport, ReadinessResult

logger = logging.getLogger(__name__)


class SchemaValidator:
    """JSON Schema validator for one output model."""

    def __init__(self, model: Type[BaseModel]):
        self.model = model
        self.schema = model.model_json_schema(mode="serialization")
        jsonschema.Draft202012Validator.check_schema(self.schema)
        self._validator = jsonschema.Draft202012Validator(self.schema)

    def validate_response(self, response_data: Dict[str, Any]) -> bool:
        """
        Validate response data against the JSON schema.

        Args:
            response_data: Response data to validate

        Returns:
            True if valid, raises ValidationError if invalid
        """
        try:
            self._validator.validate(response_data)
            logger.debug(f"{self.model.__name__} validated successfully against JSON schema")
            return True
        except jsonschema.ValidationError as e:
            logger.error(f"Schema validation failed for {self.model.__name__}: {e.message}")
            raise

    def validate_pydantic_model(self, model: BaseModel) -> bool:
        """Validate a model instance by serializing it to JSON-compatible data first."""
        return self.validate_response(model.model_dump(mode="json"))

    def get_validation_errors(self, response_data: Dict[str, Any]) -> Optional[str]:
        """
        Get detailed validation errors without raising exception.

        Args:
            response_data: Response data to validate

        Returns:
            Error message if invalid, None if valid
        """
        error = jsonschema.exceptions.best_match(self._validator.iter_errors(response_data))
        if error is None:
            return None
        return f"Schema validation error: {error.message} at path: {'/'.join(str(p) for p in error.path)}"


report_validator = SchemaValidator(ComplianceReport)
readiness_validator = SchemaValidator(ReadinessResult)


def validate_report(report: ComplianceReport) -> bool:
    return report_validator.validate_pydantic_model(report)


def validate_readiness(result: ReadinessResult) -> bool:
    return readiness_validator.validate_pydantic_model(result)
