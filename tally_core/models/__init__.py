"""
Models Package

- enums: category codes, record types and statuses
- records: user-entered category records (D4, D8, D10, D11)
"""

from .enums import (
    AtoCategoryCode,
    CategoryKind,
    CategoryPriority,
    ReceiptRequirement,
    AssetStatus,
    DisposalType,
    DepreciationMethod,
    EducationExpenseType,
    CourseType,
    StudyMode,
    DonationType,
    UPPType,
    SuggestedAction,
)
from .records import (
    CategoryRecord,
    Donation,
    SuperContribution,
    UPPEntry,
    Course,
    EducationExpense,
    DepreciatingAsset,
)

__all__ = [
    'AtoCategoryCode',
    'CategoryKind',
    'CategoryPriority',
    'ReceiptRequirement',
    'AssetStatus',
    'DisposalType',
    'DepreciationMethod',
    'EducationExpenseType',
    'CourseType',
    'StudyMode',
    'DonationType',
    'UPPType',
    'SuggestedAction',
    'CategoryRecord',
    'Donation',
    'SuperContribution',
    'UPPEntry',
    'Course',
    'EducationExpense',
    'DepreciatingAsset',
]
