import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

UNCATEGORIZED = "Uncategorized"


class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    import_id: str = Field(default="", alias="importId")
    date: dt.date
    description: str
    location: str = ""
    amount: float  # negative = money leaving the account
    category: str = UNCATEGORIZED
    manual: bool = False
    raw_type: str = Field(default="", alias="rawType")


class CategoryRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    keywords: list[str] = Field(default_factory=list)


class ImportRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    file_name: str = Field(alias="fileName")
    imported_at: dt.datetime = Field(alias="importedAt")


class RowErrorReason(str, Enum):
    TOO_FEW_COLUMNS = "too_few_columns"
    INVALID_DATE = "invalid_date"
    INVALID_AMOUNT = "invalid_amount"


class RowError(BaseModel):
    model_config = ConfigDict(frozen=True)

    row: int  # 1-based, as shown to the user
    reason: RowErrorReason
    message: str

    def __str__(self) -> str:
        return self.message


class ParseResult(BaseModel):
    transactions: list[Transaction] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    row_errors: list[RowError] = Field(default_factory=list)


class MerchantCluster(BaseModel):
    model_config = ConfigDict(frozen=True)

    signature: str
    count: int
    sample: str
