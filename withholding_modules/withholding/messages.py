"""
Validation diagnostics for withholding evaluation.

A diagnostic is the non-exceptional report of an unmet precondition: a
machine-readable code plus a plain-text message.  Messages are fixed
English text; no translation layer sits in between.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class DiagnosticCode:
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    PARTNER_NOT_FOUND = "PARTNER_NOT_FOUND"
    CURRENCY_NOT_FOUND = "CURRENCY_NOT_FOUND"
    DEFINITION_NOT_FOUND = "DEFINITION_NOT_FOUND"
    CLIENT_EXCLUDED = "CLIENT_EXCLUDED"
    INVALID_DOC_STATUS = "INVALID_DOC_STATUS"
    DOC_TYPE_NOT_FOUND = "DOC_TYPE_NOT_FOUND"
    PARTNER_MUNICIPAL_EXEMPT = "PARTNER_MUNICIPAL_EXEMPT"
    ACTIVITY_NOT_FOUND = "ACTIVITY_NOT_FOUND"
    MUNICIPAL_RATE_NOT_FOUND = "MUNICIPAL_RATE_NOT_FOUND"
    ALREADY_GENERATED = "ALREADY_GENERATED"
    TRIBUTE_UNIT_NOT_FOUND = "TRIBUTE_UNIT_NOT_FOUND"
    PAYMENT_METHOD_NOT_FOUND = "PAYMENT_METHOD_NOT_FOUND"


MESSAGES: dict[str, str] = {
    DiagnosticCode.ORDER_NOT_FOUND: "Order not found",
    DiagnosticCode.PARTNER_NOT_FOUND: "Business partner not found",
    DiagnosticCode.CURRENCY_NOT_FOUND: "Currency not found: {currency_code}",
    DiagnosticCode.DEFINITION_NOT_FOUND: "Withholding tax definition not found",
    DiagnosticCode.CLIENT_EXCLUDED: "Client is excluded from withholding {definition_name}",
    DiagnosticCode.INVALID_DOC_STATUS: "Invalid order document status {doc_status}",
    DiagnosticCode.DOC_TYPE_NOT_FOUND: "Document type not found",
    DiagnosticCode.PARTNER_MUNICIPAL_EXEMPT: "Business partner is exempt from municipal withholding",
    DiagnosticCode.ACTIVITY_NOT_FOUND: "Business activity not found",
    DiagnosticCode.MUNICIPAL_RATE_NOT_FOUND: "Municipal withholding rate not found",
    DiagnosticCode.ALREADY_GENERATED: "Withholding already generated for order {document_no}",
    DiagnosticCode.TRIBUTE_UNIT_NOT_FOUND: "Tribute unit rate not found",
    DiagnosticCode.PAYMENT_METHOD_NOT_FOUND: "Payment method not found",
}


@dataclass(frozen=True)
class ValidationDiagnostic:
    """
    A single unmet withholding precondition.

    Contract:
        Carries a machine-readable code and a human-readable message.

    Non-goals:
        - Does NOT raise exceptions -- it IS the failure representation.
    """

    code: str
    message: str
    details: dict[str, Any] | None = None


def diagnostic(code: str, **params: Any) -> ValidationDiagnostic:
    """Build the diagnostic for ``code``, formatting its message with ``params``."""
    message = MESSAGES[code].format(**params) if params else MESSAGES[code]
    return ValidationDiagnostic(code=code, message=message, details=params or None)
