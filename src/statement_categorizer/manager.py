import datetime as dt
import os
import threading
import uuid
from collections.abc import Sequence
from typing import Any

from statement_categorizer.domain import aggregate, merchants, rules, transactions
from statement_categorizer.logger import get_logger
from statement_categorizer.models import CategoryRule, ImportRecord, MerchantCluster, Transaction
from statement_categorizer.stores.ledger import LedgerStore
from statement_categorizer.stores.rules import RuleStore

logger = get_logger(__name__)


class LedgerService:
    """Holds the rule list, imports and transactions for one user.

    Every change to categories goes through the pure functions in
    ``statement_categorizer.domain``; this class only owns state and persistence.
    """

    def __init__(
        self,
        data_dir: str = ".",
        cluster_settings: merchants.ClusterSettings | None = None,
    ):
        self.rule_store = RuleStore(data_path=os.path.join(data_dir, "rules.json"))
        self.ledger = LedgerStore(data_path=os.path.join(data_dir, "ledger.json"))
        self.cluster_settings = cluster_settings or merchants.DEFAULT_CLUSTER_SETTINGS
        self._lock = threading.Lock()

    # Rules

    def get_rules(self) -> list[CategoryRule]:
        return list(self.rule_store.rules)

    def get_categories(self) -> list[str]:
        return rules.rule_categories(self.rule_store.rules)

    def update_rules(self, new_rules: Sequence[CategoryRule]) -> list[CategoryRule]:
        with self._lock:
            saved = self.rule_store.replace(new_rules)
            self._reapply_locked()
        return saved

    def add_keyword_rules(self, selections: Sequence[tuple[str, str]]) -> list[CategoryRule]:
        """Add ``(keyword, category)`` pairs as rules and recategorize once."""
        with self._lock:
            current = list(self.rule_store.rules)
            for keyword, category in selections:
                current = rules.add_keyword_rule(current, keyword, category)
            if current != self.rule_store.rules:
                self.rule_store.replace(current)
                self._reapply_locked()
            return list(self.rule_store.rules)

    def add_keyword_rule(self, keyword: str, category: str) -> list[CategoryRule]:
        return self.add_keyword_rules([(keyword, category)])

    def reapply_rules(self) -> int:
        with self._lock:
            return self._reapply_locked()

    def _reapply_locked(self) -> int:
        before = self.ledger.transactions
        updated = rules.apply_rules(list(before.values()), self.rule_store.rules)
        changed = sum(1 for tx in updated if tx.category != before[tx.id].category)
        self.ledger.replace_transactions(updated)
        self.ledger.save()
        logger.info("[RULES] Re-applied rules: %d of %d transactions changed.", changed, len(updated))
        return changed

    def reset_manual_overrides(self) -> int:
        with self._lock:
            current = list(self.ledger.transactions.values())
            cleared = sum(1 for tx in current if tx.manual)
            self.ledger.replace_transactions(rules.reset_manual_overrides(current, self.rule_store.rules))
            self.ledger.save()
        logger.info("[RULES] Cleared %d manual overrides.", cleared)
        return cleared

    # Imports

    def record_import(
        self,
        file_name: str,
        parsed: Sequence[Transaction],
        *,
        import_id: str | None = None,
        imported_at: dt.datetime | None = None,
    ) -> tuple[ImportRecord, list[Transaction]]:
        record = ImportRecord(
            id=import_id or str(uuid.uuid4()),
            file_name=file_name or "import.csv",
            imported_at=imported_at or dt.datetime.now(dt.timezone.utc),
        )
        with self._lock:
            categorized = rules.apply_rules(
                transactions.register_transactions(parsed, record.id),
                self.rule_store.rules,
            )
            record = self.ledger.add_import(record)
            self.ledger.upsert_transactions(categorized)
            self.ledger.save()
        logger.info(
            "[IMPORT] Stored import %s (%s) with %d transactions.",
            record.id,
            record.file_name,
            len(categorized),
        )
        return record, categorized

    def list_imports(self) -> list[ImportRecord]:
        with self._lock:
            records = list(self.ledger.imports.values())
        return sorted(records, key=lambda record: record.imported_at, reverse=True)

    def delete_import(self, import_id: str) -> bool:
        with self._lock:
            deleted = self.ledger.delete_import(import_id)
            if deleted:
                self.ledger.save()
        if deleted:
            logger.info("[IMPORT] Deleted import %s.", import_id)
        return deleted

    def delete_all(self) -> None:
        with self._lock:
            self.ledger.clear()
            self.ledger.save()
        logger.info("[IMPORT] Deleted all imports and transactions.")

    # Transactions

    def _snapshot(self) -> list[Transaction]:
        with self._lock:
            return list(self.ledger.transactions.values())

    def list_transactions(
        self,
        *,
        import_ids: Sequence[str] | None = None,
        date_from: dt.date | None = None,
        date_to: dt.date | None = None,
        query: str | None = None,
    ) -> list[Transaction]:
        selected = transactions.filter_transactions(
            self._snapshot(),
            import_ids=set(import_ids) if import_ids else None,
            date_from=date_from,
            date_to=date_to,
        )
        return transactions.sort_newest_first(transactions.search_transactions(selected, query))

    def set_category(self, transaction_id: str, category: str) -> Transaction | None:
        with self._lock:
            existing = self.ledger.transactions.get(transaction_id)
            if existing is None:
                return None
            updated = transactions.override_category(existing, category)
            self.ledger.upsert_transactions([updated])
            self.ledger.save()
        logger.info("[CATEGORIZE] Transaction %s -> '%s' (manual).", transaction_id, category)
        return updated

    # Views

    def merchant_clusters(self, query: str | None = None) -> list[MerchantCluster]:
        clusters = merchants.cluster_uncategorized(self._snapshot(), self.cluster_settings)
        return merchants.filter_clusters(clusters, query)

    def summary(self, selected: Sequence[Transaction]) -> dict[str, Any]:
        bounds = aggregate.date_bounds(selected)
        return {
            "total_spending": aggregate.total_spending(selected),
            "by_category": aggregate.totals_by_category(selected),
            "by_month": aggregate.totals_by_month(selected),
            "date_bounds": (
                {"from": bounds[0].isoformat(), "to": bounds[1].isoformat()} if bounds else None
            ),
        }

    def export_json(self) -> dict[str, Any]:
        return transactions.export_json(
            self.list_imports(),
            transactions.sort_newest_first(self._snapshot()),
        )
