"""
Tally Core Workpaper Engine - Package Init

Exports the workpaper components used by the calculators and exporter.
"""

from tally_core.services.workpaper.models import (
    DisposalRecord,
    LowValuePoolAsset,
    PoolSummary,
    LowValuePoolWorkpaper,
    PoolExportLine,
    LowValuePoolExport,
    CategoryClaim,
    ValidationResult,
)

from tally_core.services.workpaper.low_value_pool import (
    LOW_VALUE_POOL_THRESHOLD,
    LOW_VALUE_POOL_RATE,
    LOW_VALUE_POOL_FIRST_YEAR_RATE,
    ATO_D6_GUIDANCE,
    is_eligible,
    create_empty_workpaper,
    add_asset,
    update_asset,
    remove_asset,
    dispose_asset,
    set_opening_balance,
    recalculate_pool,
    roll_forward,
    validate_workpaper,
    export_workpaper,
    get_workpaper_stats,
)

from tally_core.services.workpaper.claims import ClaimLedger, TaxYearSummary

from tally_core.services.workpaper.storage import (
    WorkpaperStore,
    InMemoryWorkpaperStore,
    JsonFileWorkpaperStore,
    workpaper_key,
    load_model,
)

from tally_core.services.workpaper.sync import WorkpaperSession

__all__ = [
    # Models
    'DisposalRecord',
    'LowValuePoolAsset',
    'PoolSummary',
    'LowValuePoolWorkpaper',
    'PoolExportLine',
    'LowValuePoolExport',
    'CategoryClaim',
    'ValidationResult',

    # Low-value pool
    'LOW_VALUE_POOL_THRESHOLD',
    'LOW_VALUE_POOL_RATE',
    'LOW_VALUE_POOL_FIRST_YEAR_RATE',
    'ATO_D6_GUIDANCE',
    'is_eligible',
    'create_empty_workpaper',
    'add_asset',
    'update_asset',
    'remove_asset',
    'dispose_asset',
    'set_opening_balance',
    'recalculate_pool',
    'roll_forward',
    'validate_workpaper',
    'export_workpaper',
    'get_workpaper_stats',

    # Claims
    'ClaimLedger',
    'TaxYearSummary',

    # Persistence
    'WorkpaperStore',
    'InMemoryWorkpaperStore',
    'JsonFileWorkpaperStore',
    'workpaper_key',
    'load_model',
    'WorkpaperSession',
]
