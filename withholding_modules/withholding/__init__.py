"""
Withholding -- municipal and POS VAT withholding evaluation.

Public entry point is ``WithholdingService``; strategies, the repository
and the payment-reference manager are exported for direct use and tests.
"""

from withholding_modules.withholding.duplicates import DuplicateDetector
from withholding_modules.withholding.messages import DiagnosticCode, ValidationDiagnostic
from withholding_modules.withholding.models import (
    TENDER_TYPE_CREDIT_MEMO,
    PaymentMethod,
    PaymentMethodAllocation,
    PaymentReference,
    RateList,
    RateListVersion,
    TributeUnit,
    WithholdingRecord,
    WithholdingRegimeType,
    WithholdingTaxDefinition,
)
from withholding_modules.withholding.municipal import MunicipalWithholdingStrategy
from withholding_modules.withholding.payment_reference import (
    PaymentReferenceManager,
    PaymentReferenceSync,
)
from withholding_modules.withholding.pos_vat import PosVatWithholdingStrategy
from withholding_modules.withholding.rates import RateResolver
from withholding_modules.withholding.repository import WithholdingRepository
from withholding_modules.withholding.service import WithholdingService
from withholding_modules.withholding.strategy import (
    EvaluationContext,
    EvaluationResult,
    SkipReason,
    ValidationOutcome,
    WithholdingStrategy,
)

__all__ = [
    "WithholdingService",
    "WithholdingStrategy",
    "MunicipalWithholdingStrategy",
    "PosVatWithholdingStrategy",
    "WithholdingRepository",
    "RateResolver",
    "DuplicateDetector",
    "PaymentReferenceManager",
    "PaymentReferenceSync",
    "EvaluationContext",
    "EvaluationResult",
    "ValidationOutcome",
    "SkipReason",
    "DiagnosticCode",
    "ValidationDiagnostic",
    "TENDER_TYPE_CREDIT_MEMO",
    "PaymentMethod",
    "PaymentMethodAllocation",
    "PaymentReference",
    "RateList",
    "RateListVersion",
    "TributeUnit",
    "WithholdingRecord",
    "WithholdingRegimeType",
    "WithholdingTaxDefinition",
]
