"""
Lodgment Module

Produces the lodgment-ready export of a tax year's finalized claims.

Usage:
    from tally_core.lodgment import export_claims_for_lodgment
"""

from .export_service import (
    LodgmentExport,
    LodgmentExportService,
    LodgmentLine,
    export_claims_for_lodgment,
)

__all__ = [
    'LodgmentExport',
    'LodgmentExportService',
    'LodgmentLine',
    'export_claims_for_lodgment',
]
