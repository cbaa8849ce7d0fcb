# WORKFLOW: Error kinds raised by the compliance engine.
# Used by: Builder, trackers, engine, stores and API routers
# All errors are local and recoverable. Routers map them to HTTP status codes:
# RecordNotFound/UnknownItem -> 404, InvalidTransition/RecordAlreadyExists -> 409,
# CatalogDataUnavailable -> 422.


class ComplianceError(Exception):
    """Base exception for compliance engine errors."""
    pass


class RecordNotFoundError(ComplianceError):
    """No compliance record exists for the given id."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Compliance record not found: {record_id}")


class RecordAlreadyExistsError(ComplianceError):
    """A live record already exists for the batch/destination/buyer triple."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Live compliance record already exists: {record_id}")


class CatalogDataUnavailableError(ComplianceError):
    """The catalog has no data for the requested market, crop or template."""
    pass


class InvalidTransitionError(ComplianceError):
    """A tracker update attempted a disallowed state change."""
    pass


class UnknownItemError(ComplianceError):
    """An update referenced an item id that is not part of the record."""

    def __init__(self, ledger: str, item_id: str):
        self.ledger = ledger
        self.item_id = item_id
        super().__init__(f"Unknown {ledger} item: {item_id}")
