import datetime as dt
from pathlib import Path

import pytest

from statement_categorizer.domain.ingest import ingest
from statement_categorizer.manager import LedgerService
from statement_categorizer.models import UNCATEGORIZED, Transaction


def _parsed(*descriptions: str) -> list[Transaction]:
    rows = [
        [f"01/{index + 10}/2024", "DEBIT", description, "", "-10.00"]
        for index, description in enumerate(descriptions)
    ]
    return ingest(rows).transactions


@pytest.fixture
def service(tmp_path: Path) -> LedgerService:
    return LedgerService(data_dir=str(tmp_path))


def test_record_import_categorizes_with_rules(service: LedgerService) -> None:
    record, stored = service.record_import("jan.csv", _parsed("KROGER #1", "HULU 555"))

    assert record.file_name == "jan.csv"
    assert [tx.category for tx in stored] == ["Groceries", UNCATEGORIZED]
    assert {tx.import_id for tx in stored} == {record.id}
    assert len(service.list_transactions()) == 2


def test_same_file_twice_keeps_both_imports(service: LedgerService) -> None:
    first, _ = service.record_import("jan.csv", _parsed("KROGER #1"))
    second, _ = service.record_import("jan.csv", _parsed("KROGER #1"))

    assert first.id != second.id
    assert len(service.list_imports()) == 2
    assert len(service.list_transactions()) == 2
    assert len(service.list_transactions(import_ids=[first.id])) == 1


def test_list_imports_newest_first(service: LedgerService) -> None:
    service.record_import("old.csv", [], imported_at=dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc))
    service.record_import("new.csv", [], imported_at=dt.datetime(2024, 3, 1, tzinfo=dt.timezone.utc))
    assert [record.file_name for record in service.list_imports()] == ["new.csv", "old.csv"]


def test_set_category_marks_manual(service: LedgerService) -> None:
    _, stored = service.record_import("jan.csv", _parsed("HULU 555"))

    updated = service.set_category(stored[0].id, "Streaming")

    assert updated is not None
    assert updated.manual is True
    assert service.list_transactions(query="streaming")[0].id == stored[0].id
    assert service.set_category("missing", "Fun") is None


def test_keyword_rule_recategorizes_but_keeps_manual(service: LedgerService) -> None:
    _, stored = service.record_import("jan.csv", _parsed("HULU 555", "HULU 777"))
    service.set_category(stored[0].id, "Entertainment")

    rules = service.add_keyword_rule("HULU", "Streaming")

    assert rules[-1].category == "Streaming"
    assert rules[-1].keywords == ["hulu"]
    by_id = {tx.id: tx for tx in service.list_transactions()}
    assert by_id[stored[0].id].category == "Entertainment"
    assert by_id[stored[1].id].category == "Streaming"
    assert "Streaming" in service.get_categories()


def test_reset_manual_overrides(service: LedgerService) -> None:
    _, stored = service.record_import("jan.csv", _parsed("KROGER #1"))
    service.set_category(stored[0].id, "Fun")

    assert service.reset_manual_overrides() == 1

    tx = service.list_transactions()[0]
    assert tx.manual is False
    assert tx.category == "Groceries"


def test_merchant_clusters_only_uncategorized(service: LedgerService) -> None:
    service.record_import("jan.csv", _parsed("HULU 555", "HULU 777", "KROGER #1"))

    clusters = service.merchant_clusters()

    assert [(cluster.signature, cluster.count) for cluster in clusters] == [("hulu", 2)]
    assert service.merchant_clusters("kroger") == []


def test_summary(service: LedgerService) -> None:
    service.record_import("jan.csv", _parsed("KROGER #1", "HULU 555"))

    summary = service.summary(service.list_transactions())

    assert summary["total_spending"] == 20.0
    assert summary["by_category"] == {"Groceries": 10.0, UNCATEGORIZED: 10.0}
    assert summary["by_month"] == {"2024-01": 20.0}
    assert summary["date_bounds"] == {"from": "2024-01-10", "to": "2024-01-11"}
    assert service.summary([])["date_bounds"] is None


def test_delete_import_and_all(service: LedgerService) -> None:
    first, _ = service.record_import("a.csv", _parsed("KROGER #1"))
    service.record_import("b.csv", _parsed("HULU 555"))

    assert service.delete_import(first.id) is True
    assert service.delete_import(first.id) is False
    assert len(service.list_transactions()) == 1

    service.delete_all()
    assert service.list_imports() == []
    assert service.list_transactions() == []


def test_state_survives_restart(tmp_path: Path) -> None:
    service = LedgerService(data_dir=str(tmp_path))
    _, stored = service.record_import("jan.csv", _parsed("HULU 555"))
    service.add_keyword_rule("hulu", "Streaming")

    reloaded = LedgerService(data_dir=str(tmp_path))

    assert reloaded.list_transactions()[0].id == stored[0].id
    assert reloaded.list_transactions()[0].category == "Streaming"
    assert "Streaming" in reloaded.get_categories()
