import csv
import datetime as dt
import io
import uuid
from collections.abc import Collection, Iterable, Sequence
from typing import Any

from statement_categorizer.models import ImportRecord, Transaction

# Fixed namespace so the same import and row always map to the same id.
TRANSACTION_ID_NAMESPACE = uuid.UUID("3f1c8a52-6d0e-4b7a-9c55-2b8e4d7f1a60")

EXPORT_CSV_HEADER = (
    "id",
    "importId",
    "date",
    "description",
    "amount",
    "category",
    "manual",
    "rawType",
    "location",
)


def stable_transaction_id(import_id: str, provisional_id: str) -> str:
    return str(uuid.uuid5(TRANSACTION_ID_NAMESPACE, f"{import_id}:{provisional_id}"))


def register_transactions(transactions: Iterable[Transaction], import_id: str) -> list[Transaction]:
    """Attach freshly parsed transactions to an import.

    Ingestor ids only identify a row within one file; registered ids are
    unique across imports.
    """
    return [
        tx.model_copy(update={
            "import_id": import_id,
            "id": stable_transaction_id(import_id, tx.id),
        })
        for tx in transactions
    ]


def override_category(tx: Transaction, category: str) -> Transaction:
    return tx.model_copy(update={"category": category, "manual": True})


def filter_transactions(
    transactions: Iterable[Transaction],
    *,
    import_ids: Collection[str] | None = None,
    date_from: dt.date | None = None,
    date_to: dt.date | None = None,
) -> list[Transaction]:
    """Keep transactions in the given imports and inclusive date range."""
    result: list[Transaction] = []
    for tx in transactions:
        if import_ids and tx.import_id not in import_ids:
            continue
        if date_from and tx.date < date_from:
            continue
        if date_to and tx.date > date_to:
            continue
        result.append(tx)
    return result


def search_transactions(transactions: Iterable[Transaction], query: str | None) -> list[Transaction]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(transactions)
    return [
        tx for tx in transactions
        if needle in f"{tx.description} {tx.category}".lower()
    ]


def sort_newest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda tx: tx.date, reverse=True)


def _export_row(tx: Transaction) -> list[str]:
    return [
        tx.id,
        tx.import_id,
        tx.date.isoformat(),
        tx.description,
        str(tx.amount),
        tx.category,
        "true" if tx.manual else "false",
        tx.raw_type,
        tx.location,
    ]


def export_csv(transactions: Iterable[Transaction]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_CSV_HEADER)
    for tx in transactions:
        writer.writerow(_export_row(tx))
    return buffer.getvalue()


def export_json(
    imports: Sequence[ImportRecord],
    transactions: Sequence[Transaction],
    *,
    exported_at: dt.datetime | None = None,
) -> dict[str, Any]:
    stamp = exported_at or dt.datetime.now(dt.timezone.utc)
    return {
        "exportedAt": stamp.isoformat(),
        "imports": [record.model_dump(mode="json", by_alias=True) for record in imports],
        "transactions": [tx.model_dump(mode="json", by_alias=True) for tx in transactions],
    }
