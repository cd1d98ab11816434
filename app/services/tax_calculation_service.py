"""
BettsTax Practice - Tax Calculation Service

Sierra Leone tax liability calculations (Finance Act 2024).

Rates:
- Corporate Income Tax: 25% flat
- Individual Income Tax / PAYE (annual, SLE):
    - 0 - 600,000: 0%
    - 600,001 - 1,200,000: 15%
    - 1,200,001 - 1,800,000: 20%
    - 1,800,001 - 2,400,000: 25%
    - Above 2,400,000: 30%
- GST: 15% standard (exempt and zero-rated supplies 0%)
- Withholding Tax: 15% (dividends, fees, royalties, interest, lottery),
  10% rent, 5% commissions
- Excise Duty: 10% average rate
- Minimum Tax: 0.5% of turnover; Minimum Alternate Tax (MAT): 3% of turnover

Late payment:
- Penalty: 5% (<= 30 days), 10% (<= 60 days), 15% (> 60 days)
- Interest: principal x annual rate / 365 x days late (15% p.a.)
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, List, Optional

from app.config import settings
from app.models.tax_filing import TaxType

logger = logging.getLogger(__name__)


TWO_PLACES = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round a monetary amount to 2 decimal places (half up)."""
    return Decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def percent(value) -> Decimal:
    """Convert a configured percentage (e.g. 15) to a fraction (0.15)."""
    return Decimal(str(value)) / Decimal("100")


@dataclass
class IncomeTaxBand:
    """Progressive tax band definition."""
    lower: Decimal
    upper: Optional[Decimal]
    rate: Decimal

    def calculate_tax(self, taxable_income: Decimal) -> Decimal:
        """Calculate tax for the portion of income that falls in this band."""
        if taxable_income <= self.lower:
            return Decimal("0")

        if self.upper is None:
            taxable_in_band = taxable_income - self.lower
        else:
            taxable_in_band = min(taxable_income, self.upper) - self.lower

        if taxable_in_band <= 0:
            return Decimal("0")

        return taxable_in_band * (self.rate / 100)


SIERRA_LEONE_INDIVIDUAL_BANDS = [
    IncomeTaxBand(Decimal("0"), Decimal("600000"), Decimal("0")),
    IncomeTaxBand(Decimal("600000"), Decimal("1200000"), Decimal("15")),
    IncomeTaxBand(Decimal("1200000"), Decimal("1800000"), Decimal("20")),
    IncomeTaxBand(Decimal("1800000"), Decimal("2400000"), Decimal("25")),
    IncomeTaxBand(Decimal("2400000"), None, Decimal("30")),
]

CORPORATE_INCOME_TAX_RATE = Decimal("25")
EXCISE_DUTY_RATE = Decimal("10")
LATE_FILING_PENALTY_RATE = Decimal("5")
LATE_FILING_MINIMUM_PENALTY = Decimal("50000")
UNDER_DECLARATION_PENALTY_RATE = Decimal("20")


class WithholdingTaxType(str, Enum):
    """Payments subject to withholding tax."""
    DIVIDENDS = "dividends"
    MANAGEMENT_FEES = "management_fees"
    PROFESSIONAL_FEES = "professional_fees"
    LOTTERY_WINNINGS = "lottery_winnings"
    ROYALTIES = "royalties"
    INTEREST = "interest"
    RENT = "rent"
    COMMISSIONS = "commissions"


WHT_RATES = {
    WithholdingTaxType.DIVIDENDS: Decimal("15"),
    WithholdingTaxType.MANAGEMENT_FEES: Decimal("15"),
    WithholdingTaxType.PROFESSIONAL_FEES: Decimal("15"),
    WithholdingTaxType.LOTTERY_WINNINGS: Decimal("15"),
    WithholdingTaxType.ROYALTIES: Decimal("15"),
    WithholdingTaxType.INTEREST: Decimal("15"),
    WithholdingTaxType.RENT: Decimal("10"),
    WithholdingTaxType.COMMISSIONS: Decimal("5"),
}


class GSTCategory(str, Enum):
    """GST treatment of a supply."""
    STANDARD = "standard"
    EXEMPT = "exempt"
    ZERO_RATED = "zero-rated"


class PenaltyType(str, Enum):
    """Penalty regimes."""
    LATE_FILING = "late_filing"
    LATE_PAYMENT = "late_payment"
    UNDER_DECLARATION = "under_declaration"


@dataclass
class TaxLiabilityResult:
    """Breakdown of a liability calculation."""
    tax_type: TaxType
    taxable_amount: Decimal
    base_tax: Decimal
    minimum_tax: Decimal = Decimal("0.00")
    penalty: Decimal = Decimal("0.00")
    interest: Decimal = Decimal("0.00")
    days_late: int = 0
    calculated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_tax_liability(self) -> Decimal:
        return round_money(self.base_tax + self.penalty + self.interest)

    def to_dict(self) -> Dict[str, object]:
        return {
            "tax_type": self.tax_type.value,
            "taxable_amount": self.taxable_amount,
            "base_tax": self.base_tax,
            "minimum_tax": self.minimum_tax,
            "penalty": self.penalty,
            "interest": self.interest,
            "days_late": self.days_late,
            "total_tax_liability": self.total_tax_liability,
            "calculated_at": self.calculated_at,
        }


class TaxCalculationService:
    """
    Sierra Leone tax calculator.

    Configurable rates (GST, interest, minimum tax, MAT) are read from
    settings; statutory bands and fixed rates are module constants.
    """

    def __init__(
        self,
        individual_bands: List[IncomeTaxBand] = None,
        gst_rate_percent: Optional[float] = None,
        annual_interest_rate_percent: Optional[float] = None,
        minimum_tax_rate_percent: Optional[float] = None,
        mat_rate_percent: Optional[float] = None,
    ):
        self.individual_bands = individual_bands or SIERRA_LEONE_INDIVIDUAL_BANDS
        self.gst_rate = percent(
            settings.gst_rate_percent if gst_rate_percent is None else gst_rate_percent
        )
        self.annual_interest_rate = percent(
            settings.annual_interest_rate_percent
            if annual_interest_rate_percent is None else annual_interest_rate_percent
        )
        self.minimum_tax_rate = percent(
            settings.income_minimum_tax_rate_percent
            if minimum_tax_rate_percent is None else minimum_tax_rate_percent
        )
        self.mat_rate = percent(settings.mat_rate_percent if mat_rate_percent is None else mat_rate_percent)

    # ===========================================
    # INCOME TAX
    # ===========================================

    def calculate_individual_income_tax(self, taxable_income: Decimal) -> Decimal:
        """Progressive individual income tax."""
        taxable_income = Decimal(taxable_income)
        if taxable_income <= 0:
            return Decimal("0.00")
        tax = sum((band.calculate_tax(taxable_income) for band in self.individual_bands), Decimal("0"))
        return round_money(tax)

    def calculate_income_tax(self, taxable_income: Decimal, is_individual: bool = False) -> Decimal:
        """Income tax - progressive for individuals, flat 25% for companies."""
        if is_individual:
            return self.calculate_individual_income_tax(taxable_income)
        return round_money(max(Decimal(taxable_income), Decimal("0")) * CORPORATE_INCOME_TAX_RATE / 100)

    def calculate_paye(self, gross_salary: Decimal, allowances: Decimal = Decimal("0")) -> Decimal:
        """PAYE uses the individual bands on gross salary plus allowances."""
        return self.calculate_individual_income_tax(Decimal(gross_salary) + Decimal(allowances))

    def calculate_minimum_tax(self, annual_turnover: Decimal) -> Decimal:
        return round_money(Decimal(annual_turnover) * self.minimum_tax_rate)

    def calculate_minimum_alternate_tax(self, annual_turnover: Decimal) -> Decimal:
        return round_money(Decimal(annual_turnover) * self.mat_rate)

    @staticmethod
    def get_applicable_tax(
        calculated_income_tax: Decimal,
        minimum_tax: Decimal,
        minimum_alternate_tax: Decimal = Decimal("0"),
    ) -> Decimal:
        """The highest of calculated CIT, minimum tax and MAT applies."""
        return max(calculated_income_tax, minimum_tax, minimum_alternate_tax)

    # ===========================================
    # INDIRECT & WITHHOLDING TAXES
    # ===========================================

    def calculate_gst(self, taxable_amount: Decimal, category: GSTCategory = GSTCategory.STANDARD) -> Decimal:
        """GST at the configured standard rate; exempt and zero-rated supplies carry none."""
        if category in (GSTCategory.EXEMPT, GSTCategory.ZERO_RATED):
            return Decimal("0.00")
        return round_money(Decimal(taxable_amount) * self.gst_rate)

    def calculate_withholding_tax(
        self,
        amount: Decimal,
        wht_type: WithholdingTaxType = WithholdingTaxType.PROFESSIONAL_FEES,
    ) -> Decimal:
        rate = WHT_RATES.get(wht_type, Decimal("15"))
        return round_money(Decimal(amount) * rate / 100)

    def calculate_excise_duty(self, taxable_amount: Decimal) -> Decimal:
        return round_money(Decimal(taxable_amount) * EXCISE_DUTY_RATE / 100)

    # ===========================================
    # PENALTIES & INTEREST
    # ===========================================

    def calculate_penalty(self, tax_amount: Decimal, days_late: int, penalty_type: PenaltyType) -> Decimal:
        """
        Calculate a penalty.

        - Late filing: 5% of tax due, minimum SLE 50,000
        - Late payment: 5% / 10% / 15% by days late (30 / 60 / beyond)
        - Under-declaration: 20% of the additional tax
        """
        tax_amount = Decimal(tax_amount)

        if penalty_type == PenaltyType.LATE_FILING:
            penalty = max(tax_amount * LATE_FILING_PENALTY_RATE / 100, LATE_FILING_MINIMUM_PENALTY)
        elif penalty_type == PenaltyType.LATE_PAYMENT:
            if days_late <= 0:
                penalty = Decimal("0")
            elif days_late <= 30:
                penalty = tax_amount * Decimal("0.05")
            elif days_late <= 60:
                penalty = tax_amount * Decimal("0.10")
            else:
                penalty = tax_amount * Decimal("0.15")
        else:
            penalty = tax_amount * UNDER_DECLARATION_PENALTY_RATE / 100

        return round_money(penalty)

    def calculate_interest(
        self,
        principal_amount: Decimal,
        days_late: int,
        annual_interest_rate: Optional[Decimal] = None,
    ) -> Decimal:
        """Simple daily interest on late payment; zero when not late."""
        if days_late <= 0:
            return Decimal("0.00")
        rate = self.annual_interest_rate if annual_interest_rate is None else Decimal(annual_interest_rate)
        daily_rate = rate / Decimal("365")
        return round_money(Decimal(principal_amount) * daily_rate * days_late)

    # ===========================================
    # LIABILITY
    # ===========================================

    def calculate_base_tax(
        self,
        tax_type: TaxType,
        taxable_amount: Decimal,
        is_individual: bool = False,
    ) -> Decimal:
        """Base tax for a tax type before minimum tax, penalties and interest."""
        if tax_type == TaxType.INCOME_TAX:
            return self.calculate_income_tax(taxable_amount, is_individual)
        if tax_type == TaxType.PERSONAL_INCOME_TAX:
            return self.calculate_income_tax(taxable_amount, is_individual=True)
        if tax_type == TaxType.CORPORATE_INCOME_TAX:
            return self.calculate_income_tax(taxable_amount, is_individual=False)
        if tax_type == TaxType.GST:
            return self.calculate_gst(taxable_amount)
        if tax_type in (TaxType.PAYE, TaxType.PAYROLL_TAX):
            return self.calculate_paye(taxable_amount)
        if tax_type == TaxType.WITHHOLDING_TAX:
            return self.calculate_withholding_tax(taxable_amount, WithholdingTaxType.PROFESSIONAL_FEES)
        if tax_type == TaxType.EXCISE_DUTY:
            return self.calculate_excise_duty(taxable_amount)
        raise ValueError(f"Tax type {tax_type} not supported")

    def calculate_total_liability(
        self,
        tax_type: TaxType,
        taxable_amount: Decimal,
        due_date: Optional[date] = None,
        annual_turnover: Decimal = Decimal("0"),
        is_individual: bool = False,
        as_of: Optional[date] = None,
    ) -> TaxLiabilityResult:
        """
        Full liability: base tax, minimum tax for companies, and late-payment
        penalty and interest when the due date has passed.

        Args:
            tax_type: Tax being calculated
            taxable_amount: Taxable base
            due_date: Payment due date; no penalty or interest when omitted
            annual_turnover: Turnover for minimum tax (companies only)
            is_individual: Individual taxpayer flag for income tax
            as_of: Calculation date (defaults to today, UTC)

        Returns:
            TaxLiabilityResult with the breakdown
        """
        taxable_amount = round_money(Decimal(taxable_amount))
        base_tax = self.calculate_base_tax(tax_type, taxable_amount, is_individual)

        result = TaxLiabilityResult(
            tax_type=tax_type,
            taxable_amount=taxable_amount,
            base_tax=base_tax,
        )

        is_corporate = tax_type == TaxType.CORPORATE_INCOME_TAX or (
            tax_type == TaxType.INCOME_TAX and not is_individual
        )
        if is_corporate and Decimal(annual_turnover) > 0:
            result.minimum_tax = self.calculate_minimum_tax(annual_turnover)
            result.base_tax = self.get_applicable_tax(result.base_tax, result.minimum_tax)

        today = as_of or datetime.now(timezone.utc).date()
        if due_date and today > due_date:
            result.days_late = (today - due_date).days
            result.penalty = self.calculate_penalty(result.base_tax, result.days_late, PenaltyType.LATE_PAYMENT)
            result.interest = self.calculate_interest(result.base_tax, result.days_late)

        logger.debug(
            f"Liability for {tax_type.value}: base={result.base_tax} penalty={result.penalty} "
            f"interest={result.interest} days_late={result.days_late}"
        )
        return result
