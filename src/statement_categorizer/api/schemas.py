from pydantic import BaseModel, Field

from statement_categorizer.models import ImportRecord, RowError, Transaction


class ImportResponse(BaseModel):
    import_record: ImportRecord = Field(serialization_alias="import")
    imported: int
    errors: list[str]
    row_errors: list[RowError] = Field(serialization_alias="rowErrors")
    transactions: list[Transaction]


class CategoryUpdateRequest(BaseModel):
    category: str


class KeywordRuleRequest(BaseModel):
    keyword: str
    category: str


class KeywordRulesRequest(BaseModel):
    selections: list[KeywordRuleRequest]


class SummaryResponse(BaseModel):
    total_spending: float
    by_category: dict[str, float]
    by_month: dict[str, float]
    date_bounds: dict[str, str] | None = None
