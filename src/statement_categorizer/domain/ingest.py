import csv
import io
import re
from collections.abc import Sequence

from statement_categorizer.domain.normalize import parse_amount, parse_date
from statement_categorizer.logger import get_logger
from statement_categorizer.models import (
    UNCATEGORIZED,
    ParseResult,
    RowError,
    RowErrorReason,
    Transaction,
)

logger = get_logger(__name__)

# date, raw type, description, location, amount, balance
DATE_COLUMN = 0
RAW_TYPE_COLUMN = 1
DESCRIPTION_COLUMN = 2
LOCATION_COLUMN = 3
AMOUNT_COLUMN = 4
MIN_COLUMNS = 5

_WHITESPACE_RUN = re.compile(r"\s+")

_ERROR_MESSAGES = {
    RowErrorReason.TOO_FEW_COLUMNS: "Row {row} has too few columns.",
    RowErrorReason.INVALID_DATE: "Row {row} has an invalid date.",
    RowErrorReason.INVALID_AMOUNT: "Row {row} has an invalid amount.",
}


def read_csv_rows(text: str) -> list[list[str]]:
    """Split CSV text into rows, skipping blank lines."""
    if text.startswith("\ufeff"):
        text = text[1:]
    return [row for row in csv.reader(io.StringIO(text)) if row]


def provisional_id(index: int, description: str) -> str:
    return _WHITESPACE_RUN.sub("-", f"{index}-{description}")


def _field(row: Sequence[str], column: int) -> str:
    if column >= len(row):
        return ""
    return row[column] or ""


def _row_error(row_number: int, reason: RowErrorReason) -> RowError:
    return RowError(
        row=row_number,
        reason=reason,
        message=_ERROR_MESSAGES[reason].format(row=row_number),
    )


def _parse_row(index: int, row: Sequence[str]) -> Transaction | RowError:
    row_number = index + 1
    if len(row) < MIN_COLUMNS:
        return _row_error(row_number, RowErrorReason.TOO_FEW_COLUMNS)

    date_value = parse_date(row[DATE_COLUMN])
    if date_value is None:
        return _row_error(row_number, RowErrorReason.INVALID_DATE)

    amount = parse_amount(row[AMOUNT_COLUMN])
    if amount is None:
        return _row_error(row_number, RowErrorReason.INVALID_AMOUNT)

    description = _field(row, DESCRIPTION_COLUMN)
    return Transaction(
        id=provisional_id(index, description),
        import_id="",
        date=date_value,
        raw_type=_field(row, RAW_TYPE_COLUMN),
        description=description,
        location=_field(row, LOCATION_COLUMN),
        amount=amount,
        category=UNCATEGORIZED,
        manual=False,
    )


def ingest(rows: Sequence[Sequence[str]]) -> ParseResult:
    """Turn header-less statement rows into transactions plus per-row errors.

    A bad row never aborts the batch. Accepted rows keep their input order and
    errors cite the 1-based row number of the original file.
    """
    transactions: list[Transaction] = []
    row_errors: list[RowError] = []

    for index, row in enumerate(rows):
        if isinstance(row, (str, bytes)) or not isinstance(row, Sequence):
            raise TypeError(
                f"Row {index + 1} must be a sequence of fields, got {type(row).__name__}"
            )

        parsed = _parse_row(index, row)
        if isinstance(parsed, RowError):
            logger.debug("[IMPORT] Rejected row %s: %s", parsed.row, parsed.reason.value)
            row_errors.append(parsed)
        else:
            transactions.append(parsed)

    logger.info(
        "[IMPORT] Parsed %d rows: %d accepted, %d rejected.",
        len(rows),
        len(transactions),
        len(row_errors),
    )
    return ParseResult(
        transactions=transactions,
        errors=[error.message for error in row_errors],
        row_errors=row_errors,
    )
