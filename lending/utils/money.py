"""
Decimal and Money Calculation Utilities
========================================

Provides consistent rounding and money calculations across the system
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


class MoneyCalculator:
    """
    Consistent money calculations with proper rounding

    Usage:
        total = MoneyCalculator.round_money(123.456)  # 123.46
        fee = MoneyCalculator.calculate_percentage(1000, 4)  # 40.00
    """

    # Rounding precision constants
    TWO_PLACES = Decimal('0.01')

    @staticmethod
    def to_decimal(value):
        """
        Convert int/str/Decimal to Decimal without going through binary floats

        Returns:
            Decimal, or None when the value is not a finite number
        """
        if value is None or isinstance(value, bool):
            return None
        try:
            result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
        if not result.is_finite():
            return None
        return result

    @staticmethod
    def round_money(amount, places=None, rounding=ROUND_HALF_UP):
        """
        Round amount to specified decimal places

        Args:
            amount: Amount to round (can be Decimal, int, float, str)
            places: Decimal precision (default: 2 places)
            rounding: Rounding mode (default: ROUND_HALF_UP)

        Returns:
            Decimal: Rounded amount
        """
        if amount is None:
            return Decimal('0.00')

        if places is None:
            places = MoneyCalculator.TWO_PLACES

        return Decimal(str(amount)).quantize(places, rounding=rounding)

    @staticmethod
    def has_money_precision(amount):
        """True when amount carries no more than two decimal places"""
        return amount == amount.quantize(MoneyCalculator.TWO_PLACES)

    @staticmethod
    def calculate_percentage(amount, percent, places=None):
        """
        Calculate a percentage of amount

        Args:
            amount: Base amount
            percent: Percentage (e.g., 4 for 4%)

        Example:
            >>> MoneyCalculator.calculate_percentage(21000, 4)
            Decimal('840.00')
        """
        if not amount or not percent:
            return Decimal('0.00')

        result = Decimal(str(amount)) * Decimal(str(percent)) / Decimal('100')
        return MoneyCalculator.round_money(result, places)

    @staticmethod
    def sum_amounts(*amounts):
        """Sum multiple amounts safely"""
        total = Decimal('0.00')
        for amount in amounts:
            if amount:
                total += Decimal(str(amount))
        return MoneyCalculator.round_money(total)

    @staticmethod
    def format_currency(amount, symbol='₹'):
        """
        Format amount as currency string

        Example:
            >>> MoneyCalculator.format_currency(1234567.891)
            '₹1,234,567.89'
        """
        amount = MoneyCalculator.round_money(amount)
        return f"{symbol}{amount:,.2f}"


# Quick access functions
def round_money(amount, places=None):
    """Shortcut for MoneyCalculator.round_money"""
    return MoneyCalculator.round_money(amount, places)


def format_currency(amount):
    """Shortcut for MoneyCalculator.format_currency"""
    return MoneyCalculator.format_currency(amount)
