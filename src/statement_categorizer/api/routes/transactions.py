import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from statement_categorizer.api.dependencies import (
    TransactionFilters,
    get_service,
    get_transaction_filters,
)
from statement_categorizer.api.schemas import CategoryUpdateRequest
from statement_categorizer.manager import LedgerService
from statement_categorizer.models import Transaction

router = APIRouter()


@router.get("/transactions", response_model=list[Transaction])
async def list_transactions(
    service: Annotated[LedgerService, Depends(get_service)],
    filters: Annotated[TransactionFilters, Depends(get_transaction_filters)],
) -> list[Transaction]:
    return await asyncio.to_thread(filters.apply, service)


@router.patch("/transactions/{transaction_id}", response_model=Transaction)
async def update_category(
    transaction_id: str,
    req: CategoryUpdateRequest,
    service: Annotated[LedgerService, Depends(get_service)],
) -> Transaction:
    category = req.category.strip()
    if not category:
        raise HTTPException(status_code=400, detail="Missing category.")
    updated = await asyncio.to_thread(service.set_category, transaction_id, category)
    if updated is None:
        raise HTTPException(status_code=404, detail="Transaction not found.")
    return updated
