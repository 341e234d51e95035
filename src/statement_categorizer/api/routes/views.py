import asyncio
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from statement_categorizer.api.dependencies import (
    TransactionFilters,
    get_service,
    get_transaction_filters,
)
from statement_categorizer.api.schemas import SummaryResponse
from statement_categorizer.domain.transactions import export_csv
from statement_categorizer.manager import LedgerService
from statement_categorizer.models import MerchantCluster

router = APIRouter()


@router.get("/summary", response_model=SummaryResponse)
async def get_summary(
    service: Annotated[LedgerService, Depends(get_service)],
    filters: Annotated[TransactionFilters, Depends(get_transaction_filters)],
) -> dict[str, Any]:
    selected = await asyncio.to_thread(filters.apply, service)
    return await asyncio.to_thread(service.summary, selected)


@router.get("/merchants", response_model=list[MerchantCluster])
async def get_merchant_clusters(
    service: Annotated[LedgerService, Depends(get_service)],
    q: str | None = None,
) -> list[MerchantCluster]:
    return await asyncio.to_thread(service.merchant_clusters, q)


@router.get("/export/json")
async def export_json(
    service: Annotated[LedgerService, Depends(get_service)],
) -> dict[str, Any]:
    return await asyncio.to_thread(service.export_json)


@router.get("/export/csv")
async def export_transactions_csv(
    service: Annotated[LedgerService, Depends(get_service)],
    filters: Annotated[TransactionFilters, Depends(get_transaction_filters)],
) -> Response:
    return Response(
        content=export_csv(await asyncio.to_thread(filters.apply, service)),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="transactions.csv"'},
    )
