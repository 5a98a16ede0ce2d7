"""
Quote calculations.

Provides safe numeric coercion for upstream payloads and the daily
change percentage shown in the quote table.
"""
import math
from typing import Any


class StockCalculations:
    """Static methods for quote-related calculations."""

    @staticmethod
    def safe_float(value: Any) -> float:
        """
        Safely convert a value to float.

        Args:
            value: Value to convert (number, numeric string, None, ...).

        Returns:
            Float value, or 0.0 if conversion fails or the value is NaN/inf.
        """
        if value is None or isinstance(value, bool):
            return 0.0
        try:
            result = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(result) or math.isinf(result):
            return 0.0
        return result

    @staticmethod
    def safe_int(value: Any) -> int:
        """
        Safely convert a value to int.

        Args:
            value: Value to convert.

        Returns:
            Int value (truncated), or 0 if conversion fails.
        """
        return int(StockCalculations.safe_float(value))

    @staticmethod
    def calculate_change_percent(current_price: float, previous_close: float) -> float:
        """
        Calculate the daily change percentage.

        Args:
            current_price: Latest price.
            previous_close: Previous session close.

        Returns:
            (current - previous) / previous * 100 rounded to 2 places,
            or 0.0 when there is no usable previous close.
        """
        if not previous_close:
            return 0.0
        return round((current_price - previous_close) / previous_close * 100, 2)
