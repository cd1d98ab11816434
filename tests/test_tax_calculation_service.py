"""
BettsTax Practice - Tax Calculator Tests

Sierra Leone rates, penalties and interest.
"""

import pytest
from datetime import date
from decimal import Decimal

from app.models.tax_filing import TaxType
from app.services.tax_calculation_service import (
    GSTCategory,
    PenaltyType,
    TaxCalculationService,
    WithholdingTaxType,
)


@pytest.fixture
def calculator() -> TaxCalculationService:
    return TaxCalculationService()


class TestIncomeTax:
    """Individual bands and corporate rate."""

    def test_income_below_threshold_is_exempt(self, calculator):
        assert calculator.calculate_individual_income_tax(Decimal("600000")) == Decimal("0.00")

    def test_progressive_bands(self, calculator):
        # 600k @ 15% + 600k @ 20% + 600k @ 25% + 600k @ 30%
        tax = calculator.calculate_individual_income_tax(Decimal("3000000"))
        assert tax == Decimal("540000.00")

    def test_corporate_flat_rate(self, calculator):
        assert calculator.calculate_income_tax(Decimal("1000000")) == Decimal("250000.00")

    def test_minimum_tax_applies_when_higher(self, calculator):
        result = calculator.calculate_total_liability(
            TaxType.CORPORATE_INCOME_TAX,
            Decimal("1000"),
            annual_turnover=Decimal("1000000"),
        )
        assert result.minimum_tax == Decimal("5000.00")
        assert result.base_tax == Decimal("5000.00")

    def test_minimum_alternate_tax(self, calculator):
        assert calculator.calculate_minimum_alternate_tax(Decimal("1000000")) == Decimal("30000.00")

    def test_highest_of_cit_minimum_and_alternate_tax_applies(self, calculator):
        turnover = Decimal("1000000")
        applicable = calculator.get_applicable_tax(
            calculator.calculate_income_tax(Decimal("10000")),
            calculator.calculate_minimum_tax(turnover),
            calculator.calculate_minimum_alternate_tax(turnover),
        )
        assert applicable == Decimal("30000.00")

    def test_total_liability_applies_minimum_tax_only(self, calculator):
        result = calculator.calculate_total_liability(
            TaxType.CORPORATE_INCOME_TAX,
            Decimal("10000"),
            annual_turnover=Decimal("1000000"),
        )
        # CIT 2,500 < minimum tax 5,000 < MAT 30,000
        assert result.base_tax == Decimal("5000.00")


class TestOtherTaxes:
    def test_gst_standard_and_exempt(self, calculator):
        assert calculator.calculate_gst(Decimal("1000")) == Decimal("150.00")
        assert calculator.calculate_gst(Decimal("1000"), GSTCategory.EXEMPT) == Decimal("0.00")

    def test_withholding_rates(self, calculator):
        assert calculator.calculate_withholding_tax(Decimal("1000"), WithholdingTaxType.RENT) == Decimal("100.00")
        assert calculator.calculate_withholding_tax(Decimal("1000"), WithholdingTaxType.COMMISSIONS) == Decimal("50.00")

    def test_configured_rate_override(self):
        calculator = TaxCalculationService(gst_rate_percent=10)
        assert calculator.calculate_gst(Decimal("1000")) == Decimal("100.00")


class TestPenaltiesAndInterest:
    """Late payment penalty tiers and daily interest."""

    @pytest.mark.parametrize(
        "days_late, expected",
        [(0, "0.00"), (10, "50.00"), (45, "100.00"), (90, "150.00")],
    )
    def test_late_payment_tiers(self, calculator, days_late, expected):
        penalty = calculator.calculate_penalty(Decimal("1000"), days_late, PenaltyType.LATE_PAYMENT)
        assert penalty == Decimal(expected)

    def test_late_filing_minimum(self, calculator):
        assert calculator.calculate_penalty(Decimal("1000"), 5, PenaltyType.LATE_FILING) == Decimal("50000.00")

    def test_interest(self, calculator):
        # 36,500 x 15% / 365 x 10 days
        assert calculator.calculate_interest(Decimal("36500"), 10) == Decimal("150.00")
        assert calculator.calculate_interest(Decimal("36500"), 0) == Decimal("0.00")

    def test_total_liability_when_late(self, calculator):
        """Penalty and interest are charged on the base tax."""
        result = calculator.calculate_total_liability(
            TaxType.GST,
            Decimal("100000"),
            due_date=date(2024, 1, 1),
            as_of=date(2024, 1, 11),
        )

        assert result.base_tax == Decimal("15000.00")
        assert result.days_late == 10
        assert result.penalty == Decimal("750.00")
        assert result.interest == Decimal("61.64")
        assert result.total_tax_liability == Decimal("15811.64")

    def test_not_late_before_due_date(self, calculator):
        result = calculator.calculate_total_liability(
            TaxType.GST,
            Decimal("1000"),
            due_date=date(2024, 1, 31),
            as_of=date(2024, 1, 15),
        )
        assert result.days_late == 0
        assert result.penalty == Decimal("0.00")
