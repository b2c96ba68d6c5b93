"""
Tests para el módulo de Impuestos (GST)

Cubren:
- Separación inclusive/exclusive de montos
- Exclusividad IGST vs CGST+SGST
- Desglose por componente con residuo en SGST
"""

import pytest
from decimal import Decimal

from dairydesk.common.money import quantize_money
from dairydesk.modules.taxes.calculator import TaxEngine
from dairydesk.modules.taxes.schemas import TaxRates, TaxMethod


# ===== TESTS DE TASAS =====

class TestTaxRates:
    """Tests para la tasa efectiva y la normalización"""

    def test_intrastate_rate_is_cgst_plus_sgst(self):
        rates = TaxRates(cgst=Decimal("9"), sgst=Decimal("9"))
        assert TaxEngine.total_rate(rates) == Decimal("18")

    def test_igst_wins_over_cgst_sgst(self):
        rates = TaxRates(igst=Decimal("12"), cgst=Decimal("6"), sgst=Decimal("6"))
        assert rates.total_rate == Decimal("12")

        normalized = rates.normalized()
        assert normalized.igst == Decimal("12")
        assert normalized.cgst == 0
        assert normalized.sgst == 0

    def test_rate_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            TaxRates(cgst=Decimal("101"))


# ===== TESTS DE SEPARACIÓN =====

class TestTaxSplit:
    """Tests para TaxEngine.split"""

    def test_inclusive_split(self):
        """200 con 18% incluido -> base 169.4915..., impuesto 30.5084..."""
        rates = TaxRates(cgst=Decimal("9"), sgst=Decimal("9"))
        result = TaxEngine.split(Decimal("200"), rates, TaxMethod.INCLUSIVE)

        assert quantize_money(result.taxable_value) == Decimal("169.49")
        assert quantize_money(result.tax_amount) == Decimal("30.51")
        assert result.taxable_value + result.tax_amount == Decimal("200")
        assert result.total_rate == Decimal("18")

    def test_exclusive_split(self):
        rates = TaxRates(igst=Decimal("5"))
        result = TaxEngine.split(Decimal("1000"), rates, "exclusive")

        assert result.taxable_value == Decimal("1000")
        assert result.tax_amount == Decimal("50")
        assert result.method == TaxMethod.EXCLUSIVE

    def test_zero_rate_has_no_tax(self):
        result = TaxEngine.split(Decimal("75.50"), TaxRates(), TaxMethod.INCLUSIVE)
        assert result.taxable_value == Decimal("75.50")
        assert result.tax_amount == 0

    def test_invalid_method_rejected(self):
        with pytest.raises(ValueError):
            TaxEngine.split(Decimal("10"), TaxRates(), "gross")


# ===== TESTS DE COMPONENTES =====

class TestTaxComponents:
    """Tests para el desglose IGST / CGST / SGST"""

    def test_igst_only(self):
        components = TaxEngine.components(Decimal("60"), TaxRates(igst=Decimal("12")))
        assert components.igst == Decimal("60.00")
        assert components.cgst == 0
        assert components.sgst == 0

    def test_odd_cent_goes_to_sgst(self):
        rates = TaxRates(cgst=Decimal("9"), sgst=Decimal("9"))
        components = TaxEngine.components(Decimal("30.51"), rates)

        assert components.igst == 0
        assert components.cgst == Decimal("15.26")
        assert components.sgst == Decimal("15.25")
        assert components.total == Decimal("30.51")

    @pytest.mark.parametrize("igst,cgst,sgst", [
        ("18", "0", "0"),
        ("0", "9", "9"),
        ("0", "2.5", "2.5"),
        ("5", "2.5", "2.5"),
    ])
    def test_never_igst_and_cgst_together(self, igst, cgst, sgst):
        rates = TaxRates(igst=Decimal(igst), cgst=Decimal(cgst), sgst=Decimal(sgst))
        split = TaxEngine.split(Decimal("333.33"), rates)
        components = TaxEngine.components(split.tax_amount, rates)

        assert not (components.igst > 0 and (components.cgst > 0 or components.sgst > 0))
        assert components.total == quantize_money(split.tax_amount)


# ===== TESTS DE API =====

class TestTaxApi:

    def test_split_endpoint(self, client):
        response = client.post("/taxes/split", json={
            "amount": "200",
            "rates": {"cgst": "9", "sgst": "9"},
            "method": "inclusive"
        })
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["total_rate"]) == Decimal("18")
        assert quantize_money(Decimal(data["taxable_value"])) == Decimal("169.49")

    def test_split_endpoint_rejects_negative_amount(self, client):
        response = client.post("/taxes/split", json={
            "amount": "-1",
            "rates": {"igst": "5"}
        })
        assert response.status_code == 422
