import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from statement_categorizer.api.dependencies import get_service
from statement_categorizer.api.schemas import KeywordRuleRequest, KeywordRulesRequest
from statement_categorizer.logger import get_logger
from statement_categorizer.manager import LedgerService
from statement_categorizer.models import CategoryRule

logger = get_logger(__name__)

router = APIRouter()


@router.get("/rules", response_model=list[CategoryRule])
async def get_rules(
    service: Annotated[LedgerService, Depends(get_service)],
) -> list[CategoryRule]:
    return await asyncio.to_thread(service.get_rules)


@router.put("/rules", response_model=list[CategoryRule])
async def replace_rules(
    rules: list[CategoryRule],
    service: Annotated[LedgerService, Depends(get_service)],
) -> list[CategoryRule]:
    if any(not rule.category.strip() for rule in rules):
        raise HTTPException(status_code=400, detail="Every rule needs a category.")
    return await asyncio.to_thread(service.update_rules, rules)


@router.post("/rules/keyword", response_model=list[CategoryRule])
async def add_keyword_rule(
    req: KeywordRuleRequest,
    service: Annotated[LedgerService, Depends(get_service)],
) -> list[CategoryRule]:
    if not req.keyword.strip() or not req.category.strip():
        raise HTTPException(status_code=400, detail="Choose a category before adding a rule.")
    logger.info("[RULES] Adding keyword '%s' to '%s'.", req.keyword, req.category)
    return await asyncio.to_thread(service.add_keyword_rule, req.keyword, req.category)


@router.post("/rules/keywords", response_model=list[CategoryRule])
async def add_keyword_rules(
    req: KeywordRulesRequest,
    service: Annotated[LedgerService, Depends(get_service)],
) -> list[CategoryRule]:
    selections = [
        (item.keyword, item.category)
        for item in req.selections
        if item.keyword.strip() and item.category.strip()
    ]
    if not selections:
        raise HTTPException(status_code=400, detail="Select at least one merchant category.")
    logger.info("[RULES] Adding %d keyword rules.", len(selections))
    return await asyncio.to_thread(service.add_keyword_rules, selections)


@router.post("/rules/reapply")
async def reapply_rules(
    service: Annotated[LedgerService, Depends(get_service)],
) -> dict[str, int]:
    return {"changed": await asyncio.to_thread(service.reapply_rules)}


@router.post("/rules/reset-overrides")
async def reset_overrides(
    service: Annotated[LedgerService, Depends(get_service)],
) -> dict[str, int]:
    return {"cleared": await asyncio.to_thread(service.reset_manual_overrides)}


@router.get("/categories")
async def get_categories(
    service: Annotated[LedgerService, Depends(get_service)],
) -> list[str]:
    return await asyncio.to_thread(service.get_categories)
