"""
Shared fixtures for withholding module tests.

Provides deterministic client / organization / POS ids, the three settings
the tests evaluate, and ``factory``: a helper that creates and flushes
ledger and withholding rows with sensible defaults.

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test explicitly
declares what it depends on in its function signature.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from withholding_config.schema import WithholdingSettingDef
from withholding_modules.ledger.gateway import LedgerGateway
from withholding_modules.ledger.orm import (
    BusinessPartnerModel,
    CurrencyModel,
    DocumentTypeModel,
    OrderLineModel,
    OrderModel,
    OrderTaxModel,
    OrganizationInfoModel,
    TaxModel,
)
from withholding_modules.withholding.models import WithholdingRegimeType
from withholding_modules.withholding.orm import (
    PaymentMethodModel,
    PosPaymentTypeAllocationModel,
    RateListModel,
    RateListVersionModel,
    TributeUnitModel,
    WithholdingRecordModel,
    WithholdingTaxDefinitionModel,
)
from withholding_modules.withholding.repository import WithholdingRepository
from withholding_modules.withholding.service import WithholdingService

# ---------------------------------------------------------------------------
# Deterministic ids
# ---------------------------------------------------------------------------

TEST_CLIENT_ID = UUID("00000000-0000-4000-b000-000000000001")
TEST_ORG_ID = UUID("00000000-0000-4000-b000-000000000002")
TEST_POS_ID = UUID("00000000-0000-4000-b000-000000000003")
TEST_SALES_REP_ID = UUID("00000000-0000-4000-b000-000000000004")
TEST_CONVERSION_TYPE_ID = UUID("00000000-0000-4000-b000-000000000005")

MUNICIPAL_WH_TYPE_ID = UUID("00000000-0000-4000-c000-000000000001")
VAT_WH_TYPE_ID = UUID("00000000-0000-4000-c000-000000000002")

MUNICIPAL_SETTING = WithholdingSettingDef(
    id=UUID("00000000-0000-4000-d000-000000000001"),
    name="Municipal withholding",
    regime="municipal",
    definition_id=UUID("00000000-0000-4000-e000-000000000001"),
    withholding_type_id=MUNICIPAL_WH_TYPE_ID,
    event_model_validator="DACO",
    tables=("orders",),
)

POS_VAT_ORDER_SETTING = WithholdingSettingDef(
    id=UUID("00000000-0000-4000-d000-000000000002"),
    name="POS VAT withholding on change",
    regime="pos_vat",
    definition_id=UUID("00000000-0000-4000-e000-000000000002"),
    withholding_type_id=VAT_WH_TYPE_ID,
    event_model_validator="TAC",
    tables=("orders", "order_lines"),
)

POS_VAT_LINE_SETTING = WithholdingSettingDef(
    id=UUID("00000000-0000-4000-d000-000000000003"),
    name="POS VAT withholding on new line",
    regime="pos_vat",
    definition_id=UUID("00000000-0000-4000-e000-000000000002"),
    withholding_type_id=VAT_WH_TYPE_ID,
    event_model_validator="TAN",
    tables=("order_lines",),
)

ALL_SETTINGS = (MUNICIPAL_SETTING, POS_VAT_ORDER_SETTING, POS_VAT_LINE_SETTING)


class WithholdingFactory:
    """Creates and flushes rows with defaults; every keyword can be overridden."""

    def __init__(self, session, actor_id):
        self.session = session
        self.actor_id = actor_id

    def _add(self, model):
        self.session.add(model)
        self.session.flush()
        return model

    # -- ledger -------------------------------------------------------------

    def currency(self, code="VES", std_precision=2):
        return self._add(CurrencyModel(code=code, std_precision=std_precision))

    def document_type(self, name="Standard Order", is_sotrx=False):
        return self._add(DocumentTypeModel(name=name, is_sotrx=is_sotrx))

    def partner(self, name="Acme Supplies", **overrides):
        defaults = dict(
            name=name,
            is_taxpayer=False,
            is_withholding_municipal_exempt=False,
            is_withholding_tax_exempt=False,
        )
        defaults.update(overrides)
        return self._add(BusinessPartnerModel(**defaults))

    def organization_info(self, withholding_partner_id=None, org_id=TEST_ORG_ID):
        return self._add(OrganizationInfoModel(
            org_id=org_id, withholding_partner_id=withholding_partner_id,
        ))

    def tax(self, name="IVA 16%", rate="0.16", is_withholding_tax_applied=True):
        return self._add(TaxModel(
            name=name,
            rate=Decimal(rate),
            is_withholding_tax_applied=is_withholding_tax_applied,
        ))

    def order(self, partner, **overrides):
        defaults = dict(
            client_id=TEST_CLIENT_ID,
            org_id=TEST_ORG_ID,
            document_no=f"ORD-{uuid4().hex[:8]}",
            business_partner_id=partner.id,
            currency_code="VES",
            date_ordered=date(2024, 3, 15),
            date_acct=date(2024, 3, 15),
            doc_status="CO",
            is_sotrx=False,
            is_processed=False,
            total_lines=Decimal("1000.00"),
        )
        defaults.update(overrides)
        if "total_lines" in overrides:
            defaults["total_lines"] = Decimal(str(overrides["total_lines"]))
        return self._add(OrderModel(**defaults))

    def order_line(self, order, line_net_amount="100.00", tax=None):
        return self._add(OrderLineModel(
            order_id=order.id,
            org_id=order.org_id,
            line_net_amount=Decimal(line_net_amount),
            tax_id=tax.id if tax is not None else None,
        ))

    def order_tax(self, order, tax, tax_amount, tax_base_amount="0"):
        return self._add(OrderTaxModel(
            order_id=order.id,
            tax_id=tax.id,
            tax_base_amount=Decimal(tax_base_amount),
            tax_amount=Decimal(tax_amount) if tax_amount is not None else None,
        ))

    # -- withholding reference data ----------------------------------------

    def rate_list(self, name="Rate List", versions=()):
        rate_list = self._add(RateListModel(name=name))
        for valid_from, amount in versions:
            self.rate_version(rate_list, valid_from, amount)
        return rate_list

    def rate_version(self, rate_list, valid_from, amount):
        return self._add(RateListVersionModel(
            rate_list_id=rate_list.id,
            valid_from=valid_from,
            amount=Decimal(amount),
        ))

    def definition(
        self,
        regime_type,
        name=None,
        default_rate_list_id=None,
        is_client_excluded=False,
        tribute_units=((date(2024, 1, 1), "9.00"),),
        client_id=TEST_CLIENT_ID,
    ):
        definition = self._add(WithholdingTaxDefinitionModel(
            client_id=client_id,
            name=name or f"Withholding {regime_type.value}",
            regime_type=regime_type.value,
            is_client_excluded=is_client_excluded,
            default_rate_list_id=default_rate_list_id,
        ))
        for valid_from, amount in tribute_units:
            self._add(TributeUnitModel(
                definition_id=definition.id,
                valid_from=valid_from,
                amount=Decimal(amount),
            ))
        self.session.expire(definition, ["tribute_units"])
        return definition

    def payment_method(
        self,
        name="VAT withholding",
        tender_type="M",
        withholding_type_id=VAT_WH_TYPE_ID,
        description="VAT withholding",
    ):
        return self._add(PaymentMethodModel(
            name=name,
            tender_type=tender_type,
            withholding_type_id=withholding_type_id,
            description=description,
        ))

    def allocation(
        self,
        payment_method,
        pos_id=TEST_POS_ID,
        name="VAT withholding",
        is_payment_reference=True,
        is_active=True,
    ):
        return self._add(PosPaymentTypeAllocationModel(
            pos_id=pos_id,
            payment_method_id=payment_method.id,
            name=name,
            is_payment_reference=is_payment_reference,
            is_active=is_active,
        ))

    def withholding_record(
        self,
        order,
        setting=MUNICIPAL_SETTING,
        processed=True,
        is_simulation=True,
        doc_status="CO",
        amount="10.00",
    ):
        return self._add(WithholdingRecordModel(
            source_order_id=order.id,
            org_id=order.org_id,
            definition_id=setting.definition_id,
            setting_id=setting.id,
            withholding_rate=Decimal("0.01"),
            base_amount=Decimal("1000.00"),
            withholding_amount=Decimal(amount),
            description="Prior withholding",
            is_manual=False,
            is_simulation=is_simulation,
            processed=processed,
            doc_status=doc_status,
            created_by_id=self.actor_id,
        ))


@pytest.fixture
def factory(session, test_actor_id):
    return WithholdingFactory(session, test_actor_id)


@pytest.fixture
def gateway(session):
    return LedgerGateway(session)


@pytest.fixture
def repository(session):
    return WithholdingRepository(session)


@pytest.fixture
def service(session, test_actor_id):
    """Service over the three test settings; the caller owns the transaction."""
    return WithholdingService(session, actor_id=test_actor_id, settings=ALL_SETTINGS)


@pytest.fixture
def municipal_definition(factory):
    return factory.definition(WithholdingRegimeType.MUNICIPAL, name="Municipal tax")
