"""
Tally Core - Deduction Workpaper Engine

Rule-based calculators that turn user-entered records into validated,
aggregated ATO deduction claims (D1-D15) per tax year, the D6 low-value
pool ledger, and a lodgment-ready export.
"""

__version__ = "1.0.0"
