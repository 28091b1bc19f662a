"""Exception types raised by the cold-storage services."""


class ColdStoreError(Exception):
    """Base class for all domain errors."""


class ValidationError(ColdStoreError):
    """A submitted row or field failed validation.

    ``errors`` maps a row index (or ``None`` for form-level problems) to the
    message shown next to that row.
    """

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or {}


class LotNotFoundError(ColdStoreError):
    """The referenced stock lot is not present in current stock."""


class LotOnHoldError(ColdStoreError):
    """The referenced stock lot is on QC hold and cannot leave the warehouse."""


class InsufficientStockError(ColdStoreError):
    """The requested quantity exceeds what the lot has on hand."""


class ReportWindowError(ColdStoreError, ValueError):
    """The report date window is missing a bound or is inverted."""


class StoreError(ColdStoreError):
    """A call to the Supabase data store failed."""
