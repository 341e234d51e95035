import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from statement_categorizer.api.dependencies import get_pipeline, get_service
from statement_categorizer.api.schemas import ImportResponse
from statement_categorizer.core import settings
from statement_categorizer.logger import get_logger
from statement_categorizer.manager import LedgerService
from statement_categorizer.models import ImportRecord
from statement_categorizer.services.importing import ImportPipeline, StatementDecodeError

logger = get_logger(__name__)

router = APIRouter()


@router.get("/imports", response_model=list[ImportRecord])
async def list_imports(
    service: Annotated[LedgerService, Depends(get_service)],
) -> list[ImportRecord]:
    return await asyncio.to_thread(service.list_imports)


@router.post("/imports", response_model=ImportResponse)
async def upload_statement(
    service: Annotated[LedgerService, Depends(get_service)],
    pipeline: Annotated[ImportPipeline, Depends(get_pipeline)],
    file: Annotated[UploadFile, File()],
) -> ImportResponse:
    payload = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(payload) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large.")
    if not payload.strip():
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    file_name = file.filename or "import.csv"
    logger.info("[IMPORT] Received %s (%d bytes).", file_name, len(payload))
    try:
        outcome = await pipeline.import_file(file_name, payload)
    except StatementDecodeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return ImportResponse(
        import_record=outcome.record,
        imported=len(outcome.transactions),
        errors=outcome.parsed.errors,
        row_errors=outcome.parsed.row_errors,
        transactions=outcome.transactions,
    )


@router.delete("/imports")
async def delete_all_imports(
    service: Annotated[LedgerService, Depends(get_service)],
) -> dict[str, bool]:
    await asyncio.to_thread(service.delete_all)
    return {"ok": True}


@router.delete("/imports/{import_id}")
async def delete_import(
    import_id: str,
    service: Annotated[LedgerService, Depends(get_service)],
) -> dict[str, bool]:
    if not await asyncio.to_thread(service.delete_import, import_id):
        raise HTTPException(status_code=404, detail="Import not found.")
    return {"ok": True}
