"""
Ledger mirror -- host-ledger records read by the withholding evaluators.
"""

from withholding_modules.ledger.gateway import LedgerGateway
from withholding_modules.ledger.models import (
    BusinessPartner,
    Currency,
    Document,
    DocumentStatus,
    DocumentType,
    Order,
    OrderField,
    OrderLine,
    OrderTax,
    OrganizationInfo,
    Tax,
)

__all__ = [
    "LedgerGateway",
    "BusinessPartner",
    "Currency",
    "Document",
    "DocumentStatus",
    "DocumentType",
    "Order",
    "OrderField",
    "OrderLine",
    "OrderTax",
    "OrganizationInfo",
    "Tax",
]
