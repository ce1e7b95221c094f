"""
Typed Exception Hierarchy for the Withholding Kernel.

===============================================================================
WHAT RAISES AND WHAT DOES NOT
===============================================================================

Withholding evaluation distinguishes two kinds of failure:

  1. Unmet preconditions (missing partner, excluded client, wrong status,
     exempt partner, zero rate, duplicate record).  These are NOT exceptions.
     They become ``ValidationDiagnostic`` values on the outcome and the
     document is simply "not applicable".

  2. Broken infrastructure (unknown setting, unknown regime, missing
     document, a write that the database refuses).  These ARE exceptions
     and always propagate so that the enclosing document-save transaction
     is aborted instead of leaving a partial withholding behind.

Every exception carries a class-level ``code`` (machine-readable) and stores
its context as attributes (structured data, not parsed messages).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WithholdingError (base)
    |
    +-- ConfigurationError
    |   +-- SettingNotFoundError
    |   +-- UnsupportedRegimeError
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |
    +-- PersistenceError
        +-- WithholdingRecordPersistError
        +-- PaymentReferencePersistError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                              | When Raised
----------------|-----------------------------------|---------------------------------
Configuration   | SETTING_NOT_FOUND                 | Setting id not in active config
                | UNSUPPORTED_REGIME                | Regime has no strategy
----------------|-----------------------------------|---------------------------------
Document        | DOCUMENT_NOT_FOUND                | Order / order line id unknown
----------------|-----------------------------------|---------------------------------
Persistence     | WITHHOLDING_RECORD_PERSIST_FAILED | Record insert refused by the DB
                | PAYMENT_REFERENCE_PERSIST_FAILED  | Reference upsert/delete refused
"""


class WithholdingError(Exception):
    """
    Base exception for all withholding kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "WITHHOLDING_ERROR"


# Configuration-related exceptions


class ConfigurationError(WithholdingError):
    """Base exception for withholding configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class SettingNotFoundError(ConfigurationError):
    """No active withholding setting with the given id."""

    code: str = "SETTING_NOT_FOUND"

    def __init__(self, setting_id: str):
        self.setting_id = setting_id
        super().__init__(f"Withholding setting not found: {setting_id}")


class UnsupportedRegimeError(ConfigurationError):
    """The setting names a regime that has no evaluation strategy."""

    code: str = "UNSUPPORTED_REGIME"

    def __init__(self, regime: str, setting_id: str | None = None):
        self.regime = regime
        self.setting_id = setting_id
        super().__init__(f"Unsupported withholding regime: {regime}")


# Document-related exceptions


class DocumentError(WithholdingError):
    """Base exception for document lookup errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """The triggering document does not exist in the ledger."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, table_name: str, document_id: str):
        self.table_name = table_name
        self.document_id = document_id
        super().__init__(f"Document not found: {table_name} {document_id}")


# Persistence-related exceptions


class PersistenceError(WithholdingError):
    """Base exception for writes the data store refused."""

    code: str = "PERSISTENCE_ERROR"


class WithholdingRecordPersistError(PersistenceError):
    """A withholding record could not be written."""

    code: str = "WITHHOLDING_RECORD_PERSIST_FAILED"

    def __init__(self, source_order_id: str, reason: str):
        self.source_order_id = source_order_id
        self.reason = reason
        super().__init__(
            f"Could not persist withholding for order {source_order_id}: {reason}"
        )


class PaymentReferencePersistError(PersistenceError):
    """A POS payment reference could not be written or deleted."""

    code: str = "PAYMENT_REFERENCE_PERSIST_FAILED"

    def __init__(self, order_id: str, operation: str, reason: str):
        self.order_id = order_id
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Could not {operation} payment reference for order {order_id}: {reason}"
        )
