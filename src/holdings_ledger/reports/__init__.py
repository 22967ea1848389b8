"""Report generators."""

from .filer_report import generate_filer_report

__all__ = ["generate_filer_report"]
