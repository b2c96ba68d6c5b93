"""
Tests para el módulo de Facturación (Pedidos y Facturas)

Cubren:
- Cálculo de líneas con GST inclusive / exclusive y descuentos de línea
- Totales con descuento global y ajuste personalizado
- Cantidades físicas (litros, kg, empaques)
- Pedidos: cargo al saldo, límite de crédito, anulación
- Facturas directas, facturas congeladas desde un pedido y anulación
- Listados filtrados de pedidos y facturas
- Numeración secuencial por empresa
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4
from fastapi import HTTPException
from pydantic import ValidationError as PydanticValidationError

from dairydesk.modules.billing.calculator import LineItemCalculator
from dairydesk.modules.billing.models import Order, Invoice, OrderStatus, InvoiceStatus, PaymentStatus
from dairydesk.modules.billing.schemas import (
    OrderCreate, InvoiceCreate, InvoiceFromOrder, LineItemCreate, GlobalDiscount, CustomAdjustment,
    DiscountType, AdjustmentOperation, OrderFilters, InvoiceFilters
)
from dairydesk.modules.billing.service import BillingService
from dairydesk.modules.billing.totals import DocumentTotalsAggregator
from dairydesk.modules.parties.service import PartyService
from dairydesk.modules.products.models import Product, TaxMethod, PackagingType
from dairydesk.modules.taxes.schemas import TaxRates


# ===== FIXTURES =====

@pytest.fixture
def service(db_session):
    return BillingService(db_session)


@pytest.fixture
def milk_can(db_session, tenant_id):
    """Leche a granel en can de 10 l, 100 por can, sin GST"""
    product = Product(
        tenant_id=tenant_id,
        name="Bulk Milk Can 10 l",
        sku="CAN-10L",
        selling_price=Decimal("100.00"),
        tax_method=TaxMethod.EXCLUSIVE,
        packaging_type=PackagingType.CAN,
        packaging_size_value=Decimal("10"),
        packaging_size_unit="l",
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def paneer(db_session, tenant_id):
    """Paneer a 200 con 18% incluido en el precio"""
    product = Product(
        tenant_id=tenant_id,
        name="Paneer 1 kg",
        sku="PANEER-1KG",
        selling_price=Decimal("200.00"),
        cgst=Decimal("9"),
        sgst=Decimal("9"),
        tax_method=TaxMethod.INCLUSIVE,
        packaging_type=PackagingType.BOX,
        packaging_size_value=Decimal("1"),
        packaging_size_unit="kg",
        units_per_package=Decimal("1"),
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def placed_order(service, tenant_id, dealer, milk_can):
    """Pedido de 10 cans: total 1000"""
    return service.create_order(OrderCreate(
        party_id=dealer.id,
        items=[LineItemCreate(product_id=milk_can.id, quantity=Decimal("10"))],
    ), tenant_id)


def _line(**amounts):
    defaults = dict(
        line_subtotal=Decimal("0"), discount_amount=Decimal("0"), taxable_value=Decimal("0"),
        tax_amount=Decimal("0"), igst_amount=Decimal("0"), cgst_amount=Decimal("0"),
        sgst_amount=Decimal("0"), line_total=Decimal("0"),
    )
    defaults.update({key: Decimal(value) for key, value in amounts.items()})
    return SimpleNamespace(**defaults)


# ===== TESTS DE CÁLCULO DE LÍNEAS =====

class TestLineItemCalculator:
    """Tests para LineItemCalculator.calculate"""

    def test_inclusive_price_extracts_tax(self):
        """200 con 18% incluido: base 169.49, impuesto 30.51, total 200"""
        rates = TaxRates(cgst=Decimal("9"), sgst=Decimal("9"))
        line = LineItemCalculator.calculate(Decimal("200"), Decimal("1"), rates, TaxMethod.INCLUSIVE)

        assert line.line_subtotal == Decimal("200.00")
        assert line.taxable_value == Decimal("169.49")
        assert line.tax_amount == Decimal("30.51")
        assert line.cgst_amount + line.sgst_amount == Decimal("30.51")
        assert line.igst_amount == 0
        assert line.line_total == Decimal("200.00")

    def test_exclusive_price_adds_tax(self):
        rates = TaxRates(cgst=Decimal("2.5"), sgst=Decimal("2.5"))
        line = LineItemCalculator.calculate(Decimal("30"), Decimal("10"), rates, "exclusive")

        assert line.line_subtotal == Decimal("300.00")
        assert line.taxable_value == Decimal("300.00")
        assert line.tax_amount == Decimal("15.00")
        assert line.cgst_amount == Decimal("7.50")
        assert line.sgst_amount == Decimal("7.50")
        assert line.line_total == Decimal("315.00")

    def test_line_discount_before_tax(self):
        rates = TaxRates(igst=Decimal("5"))
        line = LineItemCalculator.calculate(
            Decimal("30"), Decimal("10"), rates, "exclusive",
            discount_type="percentage", discount_value=Decimal("10")
        )

        assert line.discount_amount == Decimal("30.00")
        assert line.taxable_value == Decimal("270.00")
        assert line.igst_amount == Decimal("13.50")
        assert line.cgst_amount == 0
        assert line.line_total == Decimal("283.50")

    def test_fixed_discount_clamped_to_subtotal(self):
        line = LineItemCalculator.calculate(
            Decimal("10"), Decimal("2"), TaxRates(), "exclusive",
            discount_type="fixed", discount_value=Decimal("50")
        )
        assert line.discount_amount == Decimal("20.00")
        assert line.line_total == Decimal("0.00")

    @pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-1"), None])
    def test_quantity_must_be_positive(self, quantity):
        with pytest.raises(HTTPException) as exc_info:
            LineItemCalculator.calculate(Decimal("10"), quantity, TaxRates())
        assert exc_info.value.status_code == 422

    def test_percentage_discount_over_100(self):
        with pytest.raises(HTTPException) as exc_info:
            LineItemCalculator.calculate(
                Decimal("10"), Decimal("1"), TaxRates(),
                discount_type="percentage", discount_value=Decimal("150")
            )
        assert exc_info.value.status_code == 422

    def test_negative_price_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            LineItemCalculator.calculate(Decimal("-5"), Decimal("1"), TaxRates())
        assert exc_info.value.status_code == 422


class TestPhysicalQuantities:
    """Tests para litros / kg / empaques por línea"""

    def test_pouch_in_milliliters(self):
        result = LineItemCalculator.physical_quantities(Decimal("10"), "pouch", Decimal("500"), "ml")
        assert result.liters == Decimal("5")
        assert result.kg == 0
        assert result.packages == 0
        assert result.package_type is None

    def test_crate_multiplies_inner_units(self):
        result = LineItemCalculator.physical_quantities(
            Decimal("2"), PackagingType.CRATE, Decimal("400"), "g", Decimal("12")
        )
        assert result.units == Decimal("24")
        assert result.kg == Decimal("9.6")
        assert result.packages == Decimal("2")
        assert result.package_type == "crate"

    def test_unknown_unit_has_no_volume(self):
        result = LineItemCalculator.physical_quantities(Decimal("3"), "bottle", Decimal("1"), "piece")
        assert result.liters == 0
        assert result.kg == 0
        assert result.units == Decimal("3")

    def test_summary_groups_packages(self):
        lines = [
            SimpleNamespace(quantity=Decimal("10"), packaging_type="pouch", packaging_size_value=Decimal("500"),
                            packaging_size_unit="ml", units_per_package=None),
            SimpleNamespace(quantity=Decimal("2"), packaging_type="crate", packaging_size_value=Decimal("400"),
                            packaging_size_unit="g", units_per_package=Decimal("12")),
            SimpleNamespace(quantity=Decimal("1"), packaging_type="crate", packaging_size_value=Decimal("1"),
                            packaging_size_unit="l", units_per_package=Decimal("12")),
        ]
        summary = DocumentTotalsAggregator.physical_summary(lines)

        assert summary.total_liters == Decimal("17")
        assert summary.total_kg == Decimal("9.6")
        assert summary.total_packages == Decimal("3")
        assert summary.package_breakdown == {"crate": Decimal("3")}


# ===== TESTS DE TOTALES =====

class TestDocumentTotals:
    """Tests para DocumentTotalsAggregator.aggregate"""

    def test_global_discount_and_adjustment(self):
        """1000 - 100 de descuento + 50 de flete = 950"""
        lines = [_line(line_subtotal="1000", taxable_value="1000", line_total="1000")]
        totals = DocumentTotalsAggregator.aggregate(
            lines,
            global_discount=GlobalDiscount(type="fixed", value=Decimal("100")),
            custom_adjustment=CustomAdjustment(text="Freight", amount=Decimal("50"), operation="add"),
        )

        assert totals.grand_total == Decimal("1000")
        assert totals.global_discount.amount == Decimal("100.00")
        assert totals.custom_adjustment.applied_amount == Decimal("50.00")
        assert totals.total == Decimal("950")
        assert totals.due_amount == Decimal("950.00")
        assert totals.payment_status == PaymentStatus.PENDING

    def test_adjustment_without_text_is_ignored(self):
        lines = [_line(taxable_value="500", line_total="500")]
        totals = DocumentTotalsAggregator.aggregate(
            lines, custom_adjustment=CustomAdjustment(text="  ", amount=Decimal("40"))
        )
        assert totals.custom_adjustment.applied_amount == 0
        assert totals.total == Decimal("500")

    def test_percentage_global_discount_on_grand_total(self):
        lines = [_line(taxable_value="300", tax_amount="15", cgst_amount="7.5",
                       sgst_amount="7.5", line_total="315")]
        totals = DocumentTotalsAggregator.aggregate(
            lines, global_discount=GlobalDiscount(type="percentage", value=Decimal("10"))
        )
        assert totals.global_discount.amount == Decimal("31.50")
        assert totals.total == Decimal("283.50")

    def test_total_identity_holds_for_inclusive_lines(self):
        rates = TaxRates(cgst=Decimal("9"), sgst=Decimal("9"))
        lines = [
            LineItemCalculator.calculate(Decimal("200"), Decimal("3"), rates, "inclusive",
                                         discount_type="fixed", discount_value=Decimal("15")),
            LineItemCalculator.calculate(Decimal("30"), Decimal("7"), TaxRates(igst=Decimal("5")), "exclusive"),
        ]
        totals = DocumentTotalsAggregator.aggregate(
            lines,
            global_discount=GlobalDiscount(type="fixed", value=Decimal("20")),
            custom_adjustment=CustomAdjustment(text="Rounding", amount=Decimal("0.40")),
        )

        expected = (
            totals.subtotal - totals.item_discount + totals.tax_breakdown.total
            - totals.global_discount.amount - totals.custom_adjustment.applied_amount
        )
        assert totals.total == expected

    def test_negative_total_rejected(self):
        lines = [_line(taxable_value="1000", line_total="1000")]
        with pytest.raises(HTTPException) as exc_info:
            DocumentTotalsAggregator.aggregate(
                lines, global_discount=GlobalDiscount(type="fixed", value=Decimal("1200"))
            )
        assert exc_info.value.status_code == 422

    def test_percentage_adjustment_over_100_rejected(self):
        with pytest.raises(PydanticValidationError):
            CustomAdjustment(text="Fee", amount=Decimal("250"), type="percentage", operation="add")

    def test_aggregate_rejects_percentage_adjustment_over_100(self):
        lines = [_line(taxable_value="1000", line_total="1000")]
        adjustment = CustomAdjustment.model_construct(
            text="Fee", amount=Decimal("250"), type=DiscountType.PERCENTAGE,
            operation=AdjustmentOperation.ADD, applied_amount=Decimal("0")
        )
        with pytest.raises(HTTPException) as exc_info:
            DocumentTotalsAggregator.aggregate(lines, custom_adjustment=adjustment)
        assert exc_info.value.status_code == 422

    def test_percentage_adjustment_applied_on_grand_total(self):
        lines = [_line(taxable_value="1000", line_total="1000")]
        totals = DocumentTotalsAggregator.aggregate(
            lines, custom_adjustment=CustomAdjustment(text="Fee", amount=Decimal("10"), type="percentage", operation="add")
        )
        assert totals.custom_adjustment.applied_amount == Decimal("100.00")
        assert totals.total == Decimal("1100")

    @pytest.mark.parametrize("paid,status", [
        ("0", PaymentStatus.PENDING),
        ("300", PaymentStatus.PARTIAL),
        ("1000", PaymentStatus.COMPLETED),
        ("1200", PaymentStatus.COMPLETED),
    ])
    def test_payment_status(self, paid, status):
        assert DocumentTotalsAggregator.payment_status(Decimal("1000"), Decimal(paid)) == status

    def test_due_never_negative(self):
        assert DocumentTotalsAggregator.due_amount(Decimal("1000"), Decimal("1200")) == Decimal("0.00")


# ===== TESTS DE PEDIDOS =====

class TestOrders:
    """Tests para BillingService con pedidos"""

    def test_create_order_charges_balance(self, service, tenant_id, dealer, milk_pouch):
        order = service.create_order(OrderCreate(
            party_id=dealer.id,
            items=[LineItemCreate(product_id=milk_pouch.id, quantity=Decimal("10"))],
        ), tenant_id)

        assert order.number == "ORD000001"
        assert order.status == OrderStatus.PLACED
        assert order.total == Decimal("315.00")
        assert order.tax_total == Decimal("15.00")
        assert order.due_amount == Decimal("315.00")
        assert order.payment_status == PaymentStatus.PENDING
        assert dealer.current_balance == Decimal("315.00")

        history = PartyService(service.db).get_transactions(dealer.id, tenant_id)
        assert history[-1].reference_id == order.id
        assert history[-1].balance_after == Decimal("315.00")

    def test_numbers_are_sequential(self, service, tenant_id, dealer, milk_can, placed_order):
        second = service.create_order(OrderCreate(
            party_id=dealer.id,
            items=[LineItemCreate(product_id=milk_can.id, quantity=Decimal("1"))],
        ), tenant_id)
        assert placed_order.number == "ORD000001"
        assert second.number == "ORD000002"

    def test_line_snapshot_survives_price_change(self, db_session, service, tenant_id, placed_order, milk_can):
        milk_can.selling_price = Decimal("150.00")
        db_session.commit()

        order = service.get_order(placed_order.id, tenant_id)
        assert order.line_items[0].unit_price == Decimal("100.00")
        assert order.line_items[0].price_source == "product"
        assert order.total == Decimal("1000.00")

    def test_customer_standard_discount(self, service, tenant_id, customer, milk_can):
        order = service.create_order(OrderCreate(
            party_id=customer.id,
            items=[LineItemCreate(product_id=milk_can.id, quantity=Decimal("10"))],
        ), tenant_id)

        assert order.global_discount_amount == Decimal("50.00")
        assert order.total == Decimal("950.00")

    def test_explicit_discount_replaces_standard(self, service, tenant_id, customer, milk_can):
        order = service.create_order(OrderCreate(
            party_id=customer.id,
            items=[LineItemCreate(product_id=milk_can.id, quantity=Decimal("10"))],
            global_discount=GlobalDiscount(type="fixed", value=Decimal("100")),
            custom_adjustment=CustomAdjustment(text="Freight", amount=Decimal("50"), operation="add"),
        ), tenant_id)
        assert order.total == Decimal("950.00")
        assert order.adjustment_applied == Decimal("50.00")

    def test_inactive_product_rejected(self, db_session, service, tenant_id, dealer, milk_can):
        milk_can.is_active = False
        db_session.commit()

        with pytest.raises(HTTPException) as exc_info:
            service.create_order(OrderCreate(
                party_id=dealer.id,
                items=[LineItemCreate(product_id=milk_can.id, quantity=Decimal("1"))],
            ), tenant_id)
        assert exc_info.value.status_code == 422

    def test_unknown_product_writes_nothing(self, db_session, service, tenant_id, dealer, milk_can):
        with pytest.raises(HTTPException) as exc_info:
            service.create_order(OrderCreate(
                party_id=dealer.id,
                items=[
                    LineItemCreate(product_id=milk_can.id, quantity=Decimal("1")),
                    LineItemCreate(product_id=uuid4(), quantity=Decimal("1")),
                ],
            ), tenant_id)
        assert exc_info.value.status_code == 404
        assert db_session.query(Order).count() == 0

    def test_credit_limit_enforced(self, db_session, service, tenant_id, dealer, milk_can, ledger_settings):
        ledger_settings.ENFORCE_CREDIT_LIMIT = True

        with pytest.raises(HTTPException) as exc_info:
            service.create_order(OrderCreate(
                party_id=dealer.id,
                items=[LineItemCreate(product_id=milk_can.id, quantity=Decimal("600"))],
            ), tenant_id)

        assert exc_info.value.status_code == 422
        assert db_session.query(Order).count() == 0
        db_session.refresh(dealer)
        assert dealer.current_balance == Decimal("0.00")

    def test_credit_limit_warning_only(self, service, tenant_id, dealer, milk_can, ledger_settings):
        ledger_settings.ENFORCE_CREDIT_LIMIT = False

        order = service.create_order(OrderCreate(
            party_id=dealer.id,
            items=[LineItemCreate(product_id=milk_can.id, quantity=Decimal("600"))],
        ), tenant_id)
        assert order.total == Decimal("60000.00")
        assert dealer.current_balance == Decimal("60000.00")

    def test_cancel_order_reverses_charge(self, service, tenant_id, dealer, placed_order):
        order = service.cancel_order(placed_order.id, tenant_id, "Cliente no recibió")

        assert order.status == OrderStatus.CANCELLED
        assert "[ANULADO] Cliente no recibió" in order.notes
        assert dealer.current_balance == Decimal("0.00")

    def test_cancel_twice_conflicts(self, service, tenant_id, placed_order):
        service.cancel_order(placed_order.id, tenant_id)
        with pytest.raises(HTTPException) as exc_info:
            service.cancel_order(placed_order.id, tenant_id)
        assert exc_info.value.status_code == 409

    def test_order_totals_with_physical_summary(self, service, tenant_id, dealer, milk_pouch, curd_crate):
        order = service.create_order(OrderCreate(
            party_id=dealer.id,
            items=[
                LineItemCreate(product_id=milk_pouch.id, quantity=Decimal("10")),
                LineItemCreate(product_id=curd_crate.id, quantity=Decimal("2")),
            ],
        ), tenant_id)

        totals = service.get_order_totals(order.id, tenant_id)
        assert totals.total == order.total
        assert totals.physical.total_liters == Decimal("5")
        assert totals.physical.total_kg == Decimal("9.6")
        assert totals.physical.package_breakdown == {"crate": Decimal("2")}


# ===== TESTS DE FACTURAS =====

class TestInvoices:
    """Tests para facturas directas y desde pedido"""

    def test_direct_invoice_charges_balance(self, service, tenant_id, dealer, paneer):
        invoice = service.create_invoice(InvoiceCreate(
            party_id=dealer.id,
            items=[LineItemCreate(product_id=paneer.id, quantity=Decimal("1"))],
        ), tenant_id)

        assert invoice.number == "INV000001"
        assert invoice.status == InvoiceStatus.OPEN
        assert invoice.order_id is None
        assert invoice.subtotal == Decimal("169.49")
        assert invoice.tax_total == Decimal("30.51")
        assert invoice.total == Decimal("200.00")
        assert dealer.current_balance == Decimal("200.00")

    def test_invoice_from_order_freezes_totals(self, db_session, service, tenant_id, dealer, milk_can, placed_order):
        milk_can.selling_price = Decimal("150.00")
        db_session.commit()

        invoice = service.create_invoice_from_order(InvoiceFromOrder(order_id=placed_order.id), tenant_id)
        order = service.get_order(placed_order.id, tenant_id)

        assert invoice.order_id == order.id
        assert order.invoice_id == invoice.id
        assert order.status == OrderStatus.INVOICED
        assert invoice.total == order.total == Decimal("1000.00")
        assert invoice.line_items[0].unit_price == Decimal("100.00")
        assert len(invoice.line_items) == len(order.line_items)
        # El saldo ya se cargó con el pedido
        assert dealer.current_balance == Decimal("1000.00")

    def test_order_invoiced_only_once(self, service, tenant_id, placed_order):
        service.create_invoice_from_order(InvoiceFromOrder(order_id=placed_order.id), tenant_id)
        with pytest.raises(HTTPException) as exc_info:
            service.create_invoice_from_order(InvoiceFromOrder(order_id=placed_order.id), tenant_id)
        assert exc_info.value.status_code == 409

    def test_cancelled_order_cannot_be_invoiced(self, service, tenant_id, placed_order):
        service.cancel_order(placed_order.id, tenant_id)
        with pytest.raises(HTTPException) as exc_info:
            service.create_invoice_from_order(InvoiceFromOrder(order_id=placed_order.id), tenant_id)
        assert exc_info.value.status_code == 409
        assert service.db.query(Invoice).count() == 0

    def test_invoiced_order_cannot_be_cancelled(self, service, tenant_id, placed_order):
        service.create_invoice_from_order(InvoiceFromOrder(order_id=placed_order.id), tenant_id)
        with pytest.raises(HTTPException) as exc_info:
            service.cancel_order(placed_order.id, tenant_id)
        assert exc_info.value.status_code == 409

    def test_invoice_not_found(self, service, tenant_id):
        with pytest.raises(HTTPException) as exc_info:
            service.get_invoice(uuid4(), tenant_id)
        assert exc_info.value.status_code == 404

    def test_void_direct_invoice_reverses_charge(self, service, tenant_id, dealer, paneer):
        invoice = service.create_invoice(InvoiceCreate(
            party_id=dealer.id,
            items=[LineItemCreate(product_id=paneer.id, quantity=Decimal("1"))],
        ), tenant_id)

        voided = service.void_invoice(invoice.id, tenant_id, "Precio errado")

        assert voided.status == InvoiceStatus.VOID
        assert "[ANULADA] Precio errado" in voided.notes
        assert dealer.current_balance == Decimal("0.00")
        history = PartyService(service.db).get_transactions(dealer.id, tenant_id)
        assert history[-1].amount == Decimal("200.00")
        assert history[-1].reference_id == invoice.id

    def test_void_twice_conflicts(self, service, tenant_id, dealer, paneer):
        invoice = service.create_invoice(InvoiceCreate(
            party_id=dealer.id,
            items=[LineItemCreate(product_id=paneer.id, quantity=Decimal("1"))],
        ), tenant_id)
        service.void_invoice(invoice.id, tenant_id)

        with pytest.raises(HTTPException) as exc_info:
            service.void_invoice(invoice.id, tenant_id)
        assert exc_info.value.status_code == 409
        assert dealer.current_balance == Decimal("0.00")

    def test_void_unknown_invoice(self, service, tenant_id):
        with pytest.raises(HTTPException) as exc_info:
            service.void_invoice(uuid4(), tenant_id)
        assert exc_info.value.status_code == 404


# ===== TESTS DE LISTADOS =====

class TestDocumentListing:

    def test_orders_filtered_by_party_and_status(self, service, tenant_id, dealer, customer, milk_can, placed_order):
        other = service.create_order(OrderCreate(
            party_id=customer.id,
            items=[LineItemCreate(product_id=milk_can.id, quantity=Decimal("1"))],
        ), tenant_id)
        service.cancel_order(other.id, tenant_id)

        assert service.get_orders(tenant_id, OrderFilters()).total == 2
        by_dealer = service.get_orders(tenant_id, OrderFilters(party_id=dealer.id))
        assert by_dealer.total == 1
        assert by_dealer.items[0].id == placed_order.id
        cancelled = service.get_orders(tenant_id, OrderFilters(status="cancelled"))
        assert [o.number for o in cancelled.items] == [other.number]

    def test_orders_pagination_and_tenant_scope(self, service, tenant_id, placed_order, dealer, milk_can):
        service.create_order(OrderCreate(
            party_id=dealer.id,
            items=[LineItemCreate(product_id=milk_can.id, quantity=Decimal("1"))],
        ), tenant_id)

        page = service.get_orders(tenant_id, OrderFilters(), limit=1, offset=1)
        assert page.total == 2
        assert len(page.items) == 1
        assert service.get_orders(uuid4(), OrderFilters()).total == 0

    def test_invoices_filtered_by_status_and_payment(self, service, tenant_id, dealer, paneer, placed_order):
        direct = service.create_invoice(InvoiceCreate(
            party_id=dealer.id,
            items=[LineItemCreate(product_id=paneer.id, quantity=Decimal("1"))],
        ), tenant_id)
        service.create_invoice_from_order(InvoiceFromOrder(order_id=placed_order.id), tenant_id)
        service.void_invoice(direct.id, tenant_id)

        assert service.get_invoices(tenant_id, InvoiceFilters()).total == 2
        void = service.get_invoices(tenant_id, InvoiceFilters(status="void"))
        assert [i.id for i in void.items] == [direct.id]
        pending = service.get_invoices(tenant_id, InvoiceFilters(status="open", payment_status="pending"))
        assert pending.total == 1

    def test_invalid_date_range(self):
        with pytest.raises(PydanticValidationError):
            OrderFilters(start_date="2024-02-01", end_date="2024-01-01")


# ===== TESTS DE API =====

class TestBillingApi:

    def test_order_lifecycle(self, client, dealer, milk_pouch):
        response = client.post("/orders/", json={
            "party_id": str(dealer.id),
            "items": [{"product_id": str(milk_pouch.id), "quantity": "10"}],
            "delivery_date": "2099-01-01",
        })
        assert response.status_code == 201
        order = response.json()
        assert Decimal(order["total"]) == Decimal("315.00")
        assert order["line_items"][0]["price_source"] == "product"

        response = client.get(f"/orders/{order['id']}/totals")
        assert response.status_code == 200
        assert Decimal(response.json()["physical"]["total_liters"]) == Decimal("5")

        response = client.post("/invoices/from-order", json={"order_id": order["id"]})
        assert response.status_code == 201
        invoice = response.json()
        assert invoice["order_id"] == order["id"]
        assert Decimal(invoice["total"]) == Decimal("315.00")

        response = client.get(f"/invoices/{invoice['id']}")
        assert response.status_code == 200

    def test_empty_items_rejected(self, client, dealer):
        response = client.post("/orders/", json={"party_id": str(dealer.id), "items": []})
        assert response.status_code == 422

    def test_cancel_endpoint(self, client, dealer, milk_pouch):
        order = client.post("/orders/", json={
            "party_id": str(dealer.id),
            "items": [{"product_id": str(milk_pouch.id), "quantity": "1"}],
        }).json()

        response = client.post(f"/orders/{order['id']}/cancel", json={"reason": "Duplicado"})
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        response = client.post(f"/orders/{order['id']}/cancel", json={})
        assert response.status_code == 409

    def test_list_endpoints(self, client, dealer, milk_pouch):
        order = client.post("/orders/", json={
            "party_id": str(dealer.id),
            "items": [{"product_id": str(milk_pouch.id), "quantity": "2"}],
        }).json()
        client.post("/invoices/from-order", json={"order_id": order["id"]})

        response = client.get("/orders/", params={"status": "invoiced", "party_id": str(dealer.id)})
        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["items"][0]["number"] == order["number"]

        response = client.get("/invoices/", params={"payment_status": "pending"})
        assert response.status_code == 200
        assert response.json()["total"] == 1

        response = client.get("/invoices/", params={"start_date": "2024-02-01", "end_date": "2024-01-01"})
        assert response.status_code == 422

    def test_void_endpoint(self, client, dealer, milk_pouch):
        invoice = client.post("/invoices/", json={
            "party_id": str(dealer.id),
            "items": [{"product_id": str(milk_pouch.id), "quantity": "1"}],
        }).json()

        response = client.post(f"/invoices/{invoice['id']}/void", json={"reason": "Duplicada"})
        assert response.status_code == 200
        assert response.json()["status"] == "void"

        response = client.get(f"/parties/{dealer.id}")
        assert Decimal(response.json()["current_balance"]) == Decimal("0.00")

        response = client.post(f"/invoices/{invoice['id']}/void", json={})
        assert response.status_code == 409
