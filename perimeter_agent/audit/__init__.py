"""
Audit module for compliance invariant checking.
"""

from .checker import SEVERITIES, ComplianceChecker, ComplianceReport, Violation

__all__ = [
    "ComplianceChecker",
    "ComplianceReport",
    "Violation",
    "SEVERITIES",
]
