from enum import Enum


class AtoCategoryCode(str, Enum):
    D1 = "D1"
    D2 = "D2"
    D3 = "D3"
    D4 = "D4"
    D5 = "D5"
    D6 = "D6"
    D7 = "D7"
    D8 = "D8"
    D9 = "D9"
    D10 = "D10"
    D11 = "D11"
    D12 = "D12"
    D13 = "D13"
    D14 = "D14"
    D15 = "D15"

    @property
    def number(self) -> int:
        return int(self.value[1:])


class CategoryKind(str, Enum):
    """Whether a category reduces taxable income or is a tax offset"""
    DEDUCTION = "deduction"
    OFFSET = "offset"


class CategoryPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReceiptRequirement(str, Enum):
    REQUIRED = "required"
    RECOMMENDED = "recommended"
    NOT_REQUIRED = "not_required"
    DEPENDS = "depends"


class AssetStatus(str, Enum):
    """Derived state of a low-value pool asset"""
    ACTIVE = "active"
    DISPOSED = "disposed"
    FULLY_DEPRECIATED = "fully_depreciated"


class DisposalType(str, Enum):
    SALE = "sale"
    SCRAP = "scrap"
    TRADE_IN = "trade_in"
    OTHER = "other"


class DepreciationMethod(str, Enum):
    DIMINISHING_VALUE = "diminishing_value"
    PRIME_COST = "prime_cost"


class EducationExpenseType(str, Enum):
    COURSE_FEES = "course_fees"
    TEXTBOOKS = "textbooks"
    STATIONERY = "stationery"
    TRAVEL = "travel"
    EQUIPMENT = "equipment"
    DEPRECIATION = "depreciation"
    INTERNET = "internet"
    OTHER = "other"


class CourseType(str, Enum):
    TERTIARY_DEGREE = "tertiary_degree"
    TERTIARY_DIPLOMA = "tertiary_diploma"
    VOCATIONAL = "vocational"
    PROFESSIONAL = "professional"
    SHORT_COURSE = "short_course"
    SEMINAR = "seminar"
    CONFERENCE = "conference"
    OTHER = "other"


class StudyMode(str, Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    ONLINE = "online"
    MIXED = "mixed"


class DonationType(str, Enum):
    CASH = "cash"
    REGULAR = "regular"
    WORKPLACE = "workplace"
    PROPERTY = "property"
    SHARES = "shares"
    CULTURAL = "cultural"
    BEQUEST = "bequest"
    POLITICAL = "political"


class UPPType(str, Enum):
    FOREIGN_PENSION = "foreign_pension"
    FOREIGN_ANNUITY = "foreign_annuity"
    DOMESTIC_ANNUITY = "domestic_annuity"
    SUPER_INCOME_STREAM = "super_income_stream"


class SuggestedAction(str, Enum):
    """Verdict on an extracted document"""
    ACCEPT = "accept"
    REVIEW = "review"
    REJECT = "reject"
