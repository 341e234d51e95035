import json
import os
from collections.abc import Iterable

from pydantic import TypeAdapter, ValidationError

from statement_categorizer.logger import get_logger
from statement_categorizer.models import ImportRecord, Transaction

logger = get_logger(__name__)

_IMPORTS_ADAPTER = TypeAdapter(list[ImportRecord])
_TRANSACTIONS_ADAPTER = TypeAdapter(list[Transaction])


class LedgerStore:
    """Imports and transactions kept in memory and snapshotted to one JSON file.

    Transactions are keyed by id. Writing an id that already exists replaces
    only its category and manual flag, the same merge a relational
    ``ON CONFLICT (id) DO UPDATE`` would perform.
    """

    def __init__(self, data_path: str | None = "ledger.json"):
        self.data_path = data_path
        self.imports: dict[str, ImportRecord] = {}
        self.transactions: dict[str, Transaction] = {}
        self.load()

    def load(self) -> None:
        if not self.data_path or not os.path.exists(self.data_path):
            return
        try:
            with open(self.data_path, encoding="utf-8") as f:
                data = json.load(f)
            imports = _IMPORTS_ADAPTER.validate_python(data.get("imports", []))
            transactions = _TRANSACTIONS_ADAPTER.validate_python(data.get("transactions", []))
        except (json.JSONDecodeError, ValidationError, AttributeError) as exc:
            logger.warning("[STORE] Ignoring unreadable ledger file %s: %s", self.data_path, exc)
            self.imports = {}
            self.transactions = {}
            return
        self.imports = {record.id: record for record in imports}
        self.transactions = {tx.id: tx for tx in transactions}
        logger.info(
            "[STORE] Loaded %d imports and %d transactions.",
            len(self.imports),
            len(self.transactions),
        )

    def save(self) -> None:
        if not self.data_path:
            return
        payload = {
            "imports": _IMPORTS_ADAPTER.dump_python(
                list(self.imports.values()), mode="json", by_alias=True
            ),
            "transactions": _TRANSACTIONS_ADAPTER.dump_python(
                list(self.transactions.values()), mode="json", by_alias=True
            ),
        }
        with open(self.data_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)

    def add_import(self, record: ImportRecord) -> ImportRecord:
        # First write wins for import records.
        return self.imports.setdefault(record.id, record)

    def upsert_transactions(self, transactions: Iterable[Transaction]) -> int:
        count = 0
        for tx in transactions:
            existing = self.transactions.get(tx.id)
            if existing is not None:
                tx = existing.model_copy(update={"category": tx.category, "manual": tx.manual})
            self.transactions[tx.id] = tx
            count += 1
        return count

    def replace_transactions(self, transactions: Iterable[Transaction]) -> None:
        self.transactions = {tx.id: tx for tx in transactions}

    def delete_import(self, import_id: str) -> bool:
        self.transactions = {
            tx_id: tx for tx_id, tx in self.transactions.items() if tx.import_id != import_id
        }
        return self.imports.pop(import_id, None) is not None

    def clear(self) -> None:
        self.imports = {}
        self.transactions = {}
