import asyncio
from dataclasses import dataclass

from statement_categorizer.domain.ingest import ingest, read_csv_rows
from statement_categorizer.logger import get_logger
from statement_categorizer.manager import LedgerService
from statement_categorizer.models import ImportRecord, ParseResult, Transaction

logger = get_logger(__name__)


class StatementDecodeError(ValueError):
    """Uploaded bytes are not a UTF-8 text file."""


@dataclass(frozen=True)
class ImportOutcome:
    record: ImportRecord
    transactions: list[Transaction]
    parsed: ParseResult


def decode_statement(payload: bytes) -> str:
    try:
        return payload.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise StatementDecodeError("File is not valid UTF-8 text.") from exc


class ImportPipeline:
    def __init__(self, service: LedgerService) -> None:
        self.service = service

    def parse(self, payload: bytes) -> ParseResult:
        return ingest(read_csv_rows(decode_statement(payload)))

    def run(self, file_name: str, payload: bytes) -> ImportOutcome:
        parsed = self.parse(payload)
        record, stored = self.service.record_import(file_name, parsed.transactions)
        if parsed.errors:
            logger.warning(
                "[IMPORT] %s: %d rows rejected, first: %s",
                record.file_name,
                len(parsed.errors),
                parsed.errors[0],
            )
        return ImportOutcome(record=record, transactions=stored, parsed=parsed)

    async def import_file(self, file_name: str, payload: bytes) -> ImportOutcome:
        return await asyncio.to_thread(self.run, file_name, payload)
