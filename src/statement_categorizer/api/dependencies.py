import datetime as dt
from dataclasses import dataclass
from typing import Annotated

from fastapi import HTTPException, Query, Request

from statement_categorizer.manager import LedgerService
from statement_categorizer.models import Transaction
from statement_categorizer.services.importing import ImportPipeline


def get_service(request: Request) -> LedgerService:
    service = getattr(request.app.state, "service", None)
    if not service:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return service


def get_pipeline(request: Request) -> ImportPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if not pipeline:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return pipeline


def parse_import_ids(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def parse_iso_date(raw: str | None, name: str) -> dt.date | None:
    if not raw:
        return None
    try:
        return dt.date.fromisoformat(raw[:10])
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid '{name}' date, expected YYYY-MM-DD.") from exc


@dataclass(frozen=True)
class TransactionFilters:
    import_ids: list[str]
    date_from: dt.date | None
    date_to: dt.date | None
    query: str | None

    def apply(self, service: LedgerService) -> list[Transaction]:
        return service.list_transactions(
            import_ids=self.import_ids,
            date_from=self.date_from,
            date_to=self.date_to,
            query=self.query,
        )


def get_transaction_filters(
    date_from: Annotated[str | None, Query(alias="from")] = None,
    date_to: Annotated[str | None, Query(alias="to")] = None,
    import_ids: Annotated[str | None, Query(alias="importIds")] = None,
    q: str | None = None,
) -> TransactionFilters:
    return TransactionFilters(
        import_ids=parse_import_ids(import_ids),
        date_from=parse_iso_date(date_from, "from"),
        date_to=parse_iso_date(date_to, "to"),
        query=q,
    )
