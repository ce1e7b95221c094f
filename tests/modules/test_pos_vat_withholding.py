"""
POS VAT withholding on order and order-line saves.

The regime never writes withholding records: the unrounded per-line
withholding is summed into one credit-memo payment reference that follows
the order through every save and disappears as soon as the order leaves the
regime.
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from withholding_config.schema import WithholdingSettingDef
from withholding_modules.withholding.messages import DiagnosticCode
from withholding_modules.withholding.models import (
    TENDER_TYPE_CREDIT_MEMO,
    WithholdingRegimeType,
)
from withholding_modules.withholding.strategy import SkipReason

from tests.modules.conftest import (
    POS_VAT_LINE_SETTING,
    POS_VAT_ORDER_SETTING,
    TEST_CONVERSION_TYPE_ID,
    TEST_ORG_ID,
    TEST_POS_ID,
    TEST_SALES_REP_ID,
)

PARTNER_CHANGED = ("business_partner_id",)


def _pos_setup(
    factory,
    *,
    default_rate="0.75",
    taxes=(("IVA 16%", "50.00"), ("IVA 8%", "30.00")),
    with_allocation=True,
    tribute_units=((date(2024, 1, 1), "9.00"),),
    order_overrides=None,
    **partner_overrides,
):
    """Unprocessed POS order of a taxpayer with two withholding-applicable tax lines."""
    factory.currency()
    doc_type = factory.document_type("POS Order", is_sotrx=True)
    default_list = factory.rate_list("VAT default", [(date(2024, 1, 1), default_rate)])
    definition = factory.definition(
        WithholdingRegimeType.VAT,
        name="VAT withholding",
        default_rate_list_id=default_list.id,
        tribute_units=tribute_units,
    )
    partner_fields = dict(is_taxpayer=True)
    partner_fields.update(partner_overrides)
    partner = factory.partner(**partner_fields)
    order_fields = dict(
        pos_id=TEST_POS_ID,
        doc_status="DR",
        doc_type_target_id=doc_type.id,
        conversion_type_id=TEST_CONVERSION_TYPE_ID,
        sales_rep_id=TEST_SALES_REP_ID,
    )
    order_fields.update(order_overrides or {})
    order = factory.order(partner, **order_fields)
    order_taxes = []
    for name, amount in taxes:
        tax = factory.tax(name)
        order_taxes.append(factory.order_tax(order, tax, amount))
    method = factory.payment_method()
    allocation = factory.allocation(method) if with_allocation else None
    return SimpleNamespace(
        order=order,
        partner=partner,
        definition=definition,
        default_list=default_list,
        order_taxes=order_taxes,
        method=method,
        allocation=allocation,
    )


def _evaluate(service, gateway, order, changed=PARTNER_CHANGED, setting=POS_VAT_ORDER_SETTING):
    return service.evaluate(gateway.get_order(order.id, changed), setting)


def _references(repository, ctx):
    return repository.count_payment_references(ctx.order.id, ctx.method.id)


class TestPosVatComputation:
    """Positive withholding is written to one payment reference."""

    def test_two_tax_lines_build_one_reference(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory)

        result = _evaluate(service, gateway, ctx.order)

        assert result.is_applicable
        assert sorted(c.withholding_amount for c in result.contributions) == [
            Decimal("22.50"), Decimal("37.50"),
        ]
        assert sorted(c.description for c in result.contributions) == ["IVA 16%", "IVA 8%"]
        assert all(c.rate == Decimal("0.75") for c in result.contributions)
        assert result.withholding_amount == Decimal("60.00")
        assert result.base_amount == Decimal("80.00")
        assert result.record_ids == ()

        reference = repository.find_payment_reference(ctx.order.id, ctx.method.id)
        assert reference.id == result.payment_reference_id
        assert reference.amount == Decimal("60.00")
        assert reference.source_amount == Decimal("60.00")
        assert reference.base_amount == Decimal("80.00")
        assert reference.rate == Decimal("0.75")

    def test_reference_fields(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory)

        _evaluate(service, gateway, ctx.order)

        reference = repository.find_payment_reference(ctx.order.id, ctx.method.id)
        assert reference.tender_type == TENDER_TYPE_CREDIT_MEMO
        assert reference.is_receipt is True
        assert reference.is_keep_reference_after_process is False
        assert reference.is_auto_created is True
        assert reference.processed is False
        assert reference.business_partner_id == ctx.partner.id
        assert reference.pos_id == TEST_POS_ID
        assert reference.org_id == TEST_ORG_ID
        assert reference.currency_code == "VES"
        assert reference.conversion_type_id == TEST_CONVERSION_TYPE_ID
        assert reference.sales_rep_id == TEST_SALES_REP_ID
        assert reference.pay_date == ctx.order.date_ordered
        assert reference.payment_method_id == ctx.method.id
        assert reference.description == f"VAT withholding of {ctx.order.document_no}"

    def test_no_withholding_records_written(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory)

        _evaluate(service, gateway, ctx.order)

        assert repository.get_records_for_order(ctx.order.id) == ()

    def test_per_line_amounts_are_not_rounded(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory, taxes=(("IVA 16%", "33.33"),))

        result = _evaluate(service, gateway, ctx.order)

        # 33.33 x 0.75 = 24.9975; municipal would round, POS VAT keeps every digit
        assert result.withholding_amount == Decimal("24.9975")
        reference = repository.find_payment_reference(ctx.order.id, ctx.method.id)
        assert reference.amount == Decimal("24.9975")

    def test_repeated_saves_update_the_same_reference(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory)
        first = _evaluate(service, gateway, ctx.order)

        ctx.order_taxes[0].tax_amount = Decimal("100.00")
        factory.session.flush()
        second = _evaluate(service, gateway, ctx.order)

        assert second.payment_reference_id == first.payment_reference_id
        assert _references(repository, ctx) == 1
        reference = repository.find_payment_reference(ctx.order.id, ctx.method.id)
        assert reference.amount == Decimal("97.50")
        assert reference.base_amount == Decimal("130.00")

    def test_only_applicable_positive_tax_lines_count(self, factory, service, gateway):
        ctx = _pos_setup(factory, taxes=(("IVA 16%", "50.00"),))
        exempt_tax = factory.tax("Exempt", rate="0", is_withholding_tax_applied=False)
        factory.order_tax(ctx.order, exempt_tax, "40.00")
        zero_tax = factory.tax("IVA 0%", rate="0")
        factory.order_tax(ctx.order, zero_tax, "0.00")
        missing_tax = factory.tax("IVA pending")
        factory.order_tax(ctx.order, missing_tax, None)

        result = _evaluate(service, gateway, ctx.order)

        assert [c.description for c in result.contributions] == ["IVA 16%"]
        assert result.withholding_amount == Decimal("37.50")

    def test_no_applicable_tax_lines_deletes_reference(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory)
        _evaluate(service, gateway, ctx.order)

        for order_tax in ctx.order_taxes:
            order_tax.tax_amount = Decimal("0")
        factory.session.flush()
        result = _evaluate(service, gateway, ctx.order)

        assert result.is_applicable
        assert result.withholding_amount == Decimal("0")
        assert result.payment_reference_deleted is True
        assert _references(repository, ctx) == 0

    def test_sales_order_is_manual(self, factory, service, gateway):
        ctx = _pos_setup(factory, order_overrides={"is_sotrx": True})

        result = _evaluate(service, gateway, ctx.order)

        assert result.is_applicable
        assert result.is_manual is True


class TestPosVatRates:
    """Partner rate list beats the definition default; evaluated at the order date."""

    def test_partner_rate_overrides_default(self, factory, service, gateway):
        ctx = _pos_setup(factory)
        partner_list = factory.rate_list("Special taxpayer", [(date(2024, 1, 1), "1.00")])
        ctx.partner.withholding_tax_rate_id = partner_list.id
        factory.session.flush()

        result = _evaluate(service, gateway, ctx.order)

        assert result.rate == Decimal("1.00")
        assert result.withholding_amount == Decimal("80.00")

    def test_removing_partner_rate_falls_back_to_default(self, factory, service, gateway):
        ctx = _pos_setup(factory)
        partner_list = factory.rate_list("Special taxpayer", [(date(2024, 1, 1), "1.00")])
        ctx.partner.withholding_tax_rate_id = partner_list.id
        factory.session.flush()
        _evaluate(service, gateway, ctx.order)

        ctx.partner.withholding_tax_rate_id = None
        factory.session.flush()
        result = _evaluate(service, gateway, ctx.order)

        assert result.rate == Decimal("0.75")
        assert result.withholding_amount == Decimal("60.00")

    @pytest.mark.parametrize(
        "date_ordered, expected_rate",
        [
            (date(2024, 3, 15), Decimal("0.75")),
            (date(2024, 6, 1), Decimal("1.00")),
            (date(2024, 12, 31), Decimal("1.00")),
        ],
    )
    def test_rate_in_effect_on_order_date(self, factory, service, gateway, date_ordered, expected_rate):
        ctx = _pos_setup(factory, order_overrides={"date_ordered": date_ordered})
        factory.rate_version(ctx.default_list, date(2024, 6, 1), "1.00")

        result = _evaluate(service, gateway, ctx.order)

        assert result.rate == expected_rate

    def test_order_before_first_rate_is_zero_rate(self, factory, service, gateway):
        ctx = _pos_setup(factory, order_overrides={"date_ordered": date(2023, 12, 31)})

        result = _evaluate(service, gateway, ctx.order)

        assert not result.is_applicable
        assert result.skip_reason == SkipReason.ZERO_RATE

    def test_zero_rate_deletes_reference(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory)
        _evaluate(service, gateway, ctx.order)
        factory.rate_version(ctx.default_list, date(2024, 3, 1), "0")

        result = _evaluate(service, gateway, ctx.order)

        assert result.skip_reason == SkipReason.ZERO_RATE
        assert result.payment_reference_deleted is True
        assert _references(repository, ctx) == 0

    def test_no_rate_reference(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory)
        ctx.definition.default_rate_list_id = None
        factory.session.flush()

        result = _evaluate(service, gateway, ctx.order)

        assert result.skip_reason == SkipReason.NO_RATE_REFERENCE
        assert result.diagnostics == ()
        assert _references(repository, ctx) == 0


class TestPosVatConvergence:
    """Positive then zero leaves no reference behind."""

    def test_partner_stops_being_taxpayer(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory)
        first = _evaluate(service, gateway, ctx.order)
        assert _references(repository, ctx) == 1

        ctx.partner.is_taxpayer = False
        factory.session.flush()
        second = _evaluate(service, gateway, ctx.order)

        assert not second.is_applicable
        assert second.skip_reason == SkipReason.PARTNER_NOT_TAXPAYER
        assert second.payment_reference_deleted is True
        assert second.payment_reference_id == first.payment_reference_id
        assert _references(repository, ctx) == 0

    @pytest.mark.parametrize("exempt_on", ["order", "partner"])
    def test_withholding_exemption_deletes_reference(
        self, factory, service, gateway, repository, exempt_on,
    ):
        ctx = _pos_setup(factory)
        _evaluate(service, gateway, ctx.order)

        target = ctx.order if exempt_on == "order" else ctx.partner
        target.is_withholding_tax_exempt = True
        factory.session.flush()
        result = _evaluate(service, gateway, ctx.order)

        assert result.skip_reason == SkipReason.WITHHOLDING_EXEMPT
        assert result.return_values.source_order_id == ctx.order.id
        assert _references(repository, ctx) == 0

    def test_cleanup_without_reference_is_harmless(self, factory, service, gateway):
        ctx = _pos_setup(factory, is_taxpayer=False)

        result = _evaluate(service, gateway, ctx.order)

        assert result.skip_reason == SkipReason.PARTNER_NOT_TAXPAYER
        assert result.payment_reference_deleted is False
        assert result.payment_reference_id is None


class TestPosVatSilentExits:
    """Short-circuits that leave everything untouched."""

    def test_processed_order_keeps_reference(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory)
        _evaluate(service, gateway, ctx.order)

        ctx.order.is_processed = True
        ctx.partner.is_taxpayer = False
        factory.session.flush()
        result = _evaluate(service, gateway, ctx.order)

        assert result.skip_reason == SkipReason.ORDER_PROCESSED
        assert _references(repository, ctx) == 1

    def test_order_without_pos(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory, order_overrides={"pos_id": None})

        result = _evaluate(service, gateway, ctx.order)

        assert result.skip_reason == SkipReason.NOT_POS_ORDER
        assert _references(repository, ctx) == 0

    def test_order_save_without_relevant_change(self, factory, service, gateway):
        ctx = _pos_setup(factory)

        result = _evaluate(service, gateway, ctx.order, changed=("description",))

        assert result.skip_reason == SkipReason.NO_RELEVANT_CHANGE

    def test_document_type_change_triggers(self, factory, service, gateway):
        ctx = _pos_setup(factory)

        result = _evaluate(service, gateway, ctx.order, changed=("doc_type_target_id",))

        assert result.is_applicable

    def test_setting_without_event_trigger(self, factory, service, gateway):
        ctx = _pos_setup(factory)
        untriggered = WithholdingSettingDef(
            id=POS_VAT_ORDER_SETTING.id,
            name="Untriggered",
            regime="pos_vat",
            definition_id=POS_VAT_ORDER_SETTING.definition_id,
            withholding_type_id=POS_VAT_ORDER_SETTING.withholding_type_id,
            event_model_validator=None,
        )

        result = _evaluate(service, gateway, ctx.order, setting=untriggered)

        assert result.skip_reason == SkipReason.NO_EVENT_TRIGGER


class TestPosVatOrderLines:
    """Line saves re-evaluate the parent order."""

    @pytest.mark.parametrize("changed", [("line_net_amount",), ("tax_id",)])
    def test_line_change_evaluates_parent_order(self, factory, service, gateway, changed):
        ctx = _pos_setup(factory)
        line = factory.order_line(ctx.order)

        result = service.evaluate(gateway.get_order_line(line.id, changed), POS_VAT_ORDER_SETTING)

        assert result.is_applicable
        assert result.return_values.source_order_id == ctx.order.id
        assert result.withholding_amount == Decimal("60.00")

    def test_unchanged_line_is_skipped(self, factory, service, gateway):
        ctx = _pos_setup(factory)
        line = factory.order_line(ctx.order)

        result = service.evaluate(gateway.get_order_line(line.id), POS_VAT_ORDER_SETTING)

        assert result.skip_reason == SkipReason.NO_RELEVANT_CHANGE

    def test_new_line_evaluates_without_changes(self, factory, service, gateway):
        ctx = _pos_setup(factory)
        line = factory.order_line(ctx.order)

        result = service.evaluate(gateway.get_order_line(line.id), POS_VAT_LINE_SETTING)

        assert result.is_applicable


class TestPosVatDiagnostics:
    """Non-fatal failures are reported; the evaluation is not applicable."""

    def test_missing_allocation(self, factory, service, gateway, repository):
        ctx = _pos_setup(factory, with_allocation=False)

        result = _evaluate(service, gateway, ctx.order)

        assert not result.is_applicable
        assert result.diagnostic_codes == (DiagnosticCode.PAYMENT_METHOD_NOT_FOUND,)
        assert _references(repository, ctx) == 0

    def test_missing_tribute_unit(self, factory, service, gateway):
        ctx = _pos_setup(factory, tribute_units=())

        result = _evaluate(service, gateway, ctx.order)

        assert result.diagnostic_codes == (DiagnosticCode.TRIBUTE_UNIT_NOT_FOUND,)

    @pytest.mark.parametrize("amount", ["0", "-9.00"])
    def test_non_positive_tribute_unit(self, factory, service, gateway, amount):
        ctx = _pos_setup(factory, tribute_units=((date(2024, 1, 1), amount),))

        result = _evaluate(service, gateway, ctx.order)

        assert not result.is_applicable
        assert result.diagnostic_codes == (DiagnosticCode.TRIBUTE_UNIT_NOT_FOUND,)

    def test_tribute_unit_evaluated_at_accounting_date(self, factory, service, gateway):
        ctx = _pos_setup(
            factory,
            tribute_units=((date(2024, 4, 1), "9.00"),),
            order_overrides={"date_ordered": date(2024, 4, 15), "date_acct": date(2024, 3, 31)},
        )

        result = _evaluate(service, gateway, ctx.order)

        assert result.diagnostic_codes == (DiagnosticCode.TRIBUTE_UNIT_NOT_FOUND,)

    def test_client_excluded(self, factory, service, gateway):
        ctx = _pos_setup(factory)
        ctx.definition.is_client_excluded = True
        factory.session.flush()

        result = _evaluate(service, gateway, ctx.order)

        assert result.diagnostic_codes == (DiagnosticCode.CLIENT_EXCLUDED,)

    def test_missing_organization_partner_still_checks_allocation(self, factory, service, gateway):
        ctx = _pos_setup(factory, with_allocation=False, order_overrides={"is_sotrx": True})
        factory.organization_info(withholding_partner_id=None)

        result = _evaluate(service, gateway, ctx.order)

        assert result.diagnostic_codes == (
            DiagnosticCode.PARTNER_NOT_FOUND,
            DiagnosticCode.PAYMENT_METHOD_NOT_FOUND,
        )
        assert result.return_values.source_order_id == ctx.order.id
