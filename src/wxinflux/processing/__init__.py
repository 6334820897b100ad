"""Reading models and derived metric calculations."""

from .models import RawReading, DerivedReport, DataValidationError, generate_report

__all__ = ["RawReading", "DerivedReport", "DataValidationError", "generate_report"]
