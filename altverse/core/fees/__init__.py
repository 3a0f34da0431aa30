from .calculator import FeeBreakdown, FeeCalculator, PriceLookup, calculate_fees

__all__ = ["FeeBreakdown", "FeeCalculator", "PriceLookup", "calculate_fees"]
