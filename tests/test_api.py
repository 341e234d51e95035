import asyncio
import threading
import time
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from statement_categorizer.api.routes import rules as rule_routes
from statement_categorizer.api.routes import transactions as transaction_routes
from statement_categorizer.api.schemas import CategoryUpdateRequest
from statement_categorizer.core import settings
from statement_categorizer.main import app
from statement_categorizer.manager import LedgerService
from statement_categorizer.services.importing import ImportPipeline

client = TestClient(app)

STATEMENT = (
    "01/15/2024,DEBIT,KROGER #123,COLUMBUS OH,($21.54),1000.00\n"
    "01/20/2024,DEBIT,HULU 555,,-11.99,988.01\n"
    "02/01/2024,CREDIT,PAYROLL,,$500.00,1488.01\n"
    "02/30/2024,DEBIT,BAD DATE,,-1.00,\n"
)


@pytest.fixture
def service(tmp_path: Path) -> Generator[LedgerService, None, None]:
    had_service = hasattr(app.state, "service")
    had_pipeline = hasattr(app.state, "pipeline")
    original_service = getattr(app.state, "service", None)
    original_pipeline = getattr(app.state, "pipeline", None)
    real = LedgerService(data_dir=str(tmp_path))
    app.state.service = real
    app.state.pipeline = ImportPipeline(service=real)
    yield real
    if had_service:
        app.state.service = original_service
    else:
        delattr(app.state, "service")
    if had_pipeline:
        app.state.pipeline = original_pipeline
    else:
        delattr(app.state, "pipeline")


def _upload(content: str | bytes = STATEMENT, name: str = "jan.csv") -> dict:
    payload = content.encode("utf-8") if isinstance(content, str) else content
    response = client.post("/imports", files={"file": (name, payload, "text/csv")})
    assert response.status_code == 200, response.text
    return response.json()


def test_health() -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_missing_service_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app.state, "service", None, raising=False)
    response = client.get("/transactions")
    assert response.status_code == 500
    assert response.json()["detail"] == "Service not initialized"


def test_upload_statement(service: LedgerService) -> None:
    data = _upload()

    assert data["import"]["fileName"] == "jan.csv"
    assert data["imported"] == 3
    assert data["errors"] == ["Row 4 has an invalid date."]
    assert data["rowErrors"][0]["reason"] == "invalid_date"
    categories = {tx["description"]: tx["category"] for tx in data["transactions"]}
    assert categories["KROGER #123"] == "Groceries"
    assert categories["HULU 555"] == "Uncategorized"
    assert [record["id"] for record in client.get("/imports").json()] == [data["import"]["id"]]


def test_upload_rejects_empty_and_binary(service: LedgerService) -> None:
    empty = client.post("/imports", files={"file": ("empty.csv", b"  \n", "text/csv")})
    assert empty.status_code == 400

    binary = client.post("/imports", files={"file": ("x.csv", b"\xff\xfe\x00bad", "text/csv")})
    assert binary.status_code == 400
    assert binary.json()["detail"] == "File is not valid UTF-8 text."


def test_upload_too_large(service: LedgerService, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 10)
    response = client.post("/imports", files={"file": ("big.csv", STATEMENT.encode(), "text/csv")})
    assert response.status_code == 413


def test_transactions_filters(service: LedgerService) -> None:
    first = _upload()["import"]["id"]
    _upload(name="again.csv")

    assert len(client.get("/transactions").json()) == 6
    assert len(client.get("/transactions", params={"importIds": first}).json()) == 3

    january = client.get("/transactions", params={"from": "2024-01-01", "to": "2024-01-31"}).json()
    assert {tx["date"] for tx in january} == {"2024-01-15", "2024-01-20"}

    found = client.get("/transactions", params={"q": "hulu", "importIds": first}).json()
    assert [tx["description"] for tx in found] == ["HULU 555"]

    bad = client.get("/transactions", params={"from": "15/01/2024"})
    assert bad.status_code == 400


def test_transactions_newest_first(service: LedgerService) -> None:
    _upload()
    dates = [tx["date"] for tx in client.get("/transactions").json()]
    assert dates == sorted(dates, reverse=True)


def test_patch_category(service: LedgerService) -> None:
    tx_id = next(tx["id"] for tx in _upload()["transactions"] if tx["description"] == "HULU 555")

    response = client.patch(f"/transactions/{tx_id}", json={"category": "Streaming"})
    assert response.status_code == 200
    assert response.json()["category"] == "Streaming"
    assert response.json()["manual"] is True

    assert client.patch(f"/transactions/{tx_id}", json={"category": "  "}).status_code == 400
    missing = client.patch("/transactions/nope", json={"category": "Fun"})
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Transaction not found."


def test_keyword_rule_flow(service: LedgerService) -> None:
    _upload()
    clusters = client.get("/merchants").json()
    assert {"signature": "hulu", "count": 1, "sample": "HULU 555"} in clusters

    response = client.post("/rules/keyword", json={"keyword": "hulu", "category": "Streaming"})
    assert response.status_code == 200
    assert response.json()[-1] == {"category": "Streaming", "keywords": ["hulu"]}

    categories = {tx["description"]: tx["category"] for tx in client.get("/transactions").json()}
    assert categories["HULU 555"] == "Streaming"
    assert "Streaming" in client.get("/categories").json()
    assert all(cluster["signature"] != "hulu" for cluster in client.get("/merchants").json())

    blank = client.post("/rules/keyword", json={"keyword": "hulu", "category": ""})
    assert blank.status_code == 400


def test_bulk_keyword_rules(service: LedgerService) -> None:
    _upload()
    response = client.post(
        "/rules/keywords",
        json={"selections": [{"keyword": "hulu", "category": "Streaming"}, {"keyword": "payroll", "category": "Income"}]},
    )
    assert response.status_code == 200
    assert [rule["category"] for rule in response.json()][-2:] == ["Streaming", "Income"]

    empty = client.post("/rules/keywords", json={"selections": [{"keyword": "x", "category": ""}]})
    assert empty.status_code == 400


def test_replace_rules_and_reset(service: LedgerService) -> None:
    _upload()
    kroger = next(tx for tx in client.get("/transactions").json() if tx["description"] == "KROGER #123")
    client.patch(f"/transactions/{kroger['id']}", json={"category": "Fun"})

    response = client.put("/rules", json=[{"category": "Food", "keywords": ["kroger", "hulu"]}])
    assert response.status_code == 200
    assert client.get("/rules").json() == [{"category": "Food", "keywords": ["kroger", "hulu"]}]

    by_desc = {tx["description"]: tx for tx in client.get("/transactions").json()}
    assert by_desc["KROGER #123"]["category"] == "Fun"
    assert by_desc["HULU 555"]["category"] == "Food"

    assert client.post("/rules/reset-overrides").json() == {"cleared": 1}
    by_desc = {tx["description"]: tx for tx in client.get("/transactions").json()}
    assert by_desc["KROGER #123"]["category"] == "Food"
    assert client.post("/rules/reapply").json() == {"changed": 0}

    assert client.put("/rules", json=[{"category": " ", "keywords": []}]).status_code == 400


def test_summary(service: LedgerService) -> None:
    _upload()
    data = client.get("/summary").json()

    assert data["total_spending"] == 33.53
    assert data["by_category"] == {"Groceries": 21.54, "Uncategorized": 11.99}
    assert data["by_month"] == {"2024-01": 33.53}
    assert data["date_bounds"] == {"from": "2024-01-15", "to": "2024-02-01"}

    empty = client.get("/summary", params={"from": "2030-01-01"}).json()
    assert empty["total_spending"] == 0
    assert empty["date_bounds"] is None


def test_export(service: LedgerService) -> None:
    _upload()

    csv_response = client.get("/export/csv")
    assert csv_response.status_code == 200
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert "attachment" in csv_response.headers["content-disposition"]
    lines = csv_response.text.strip().split("\n")
    assert lines[0].startswith('"id","importId","date"')
    assert len(lines) == 4

    exported = client.get("/export/json").json()
    assert exported["imports"][0]["fileName"] == "jan.csv"
    assert len(exported["transactions"]) == 3


def test_delete_imports(service: LedgerService) -> None:
    import_id = _upload()["import"]["id"]

    assert client.delete("/imports/unknown").status_code == 404
    assert client.delete(f"/imports/{import_id}").json() == {"ok": True}
    assert client.get("/transactions").json() == []

    _upload()
    assert client.delete("/imports").status_code == 200
    assert client.get("/imports").json() == []


def test_config_endpoints(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "_external_keys", frozenset())

    data = client.get("/config").json()
    assert "CLUSTER_NOISE_TOKENS" in {field["key"] for field in data["fields"]}

    response = client.post("/config", json={"CLUSTER_SIGNATURE_TOKENS": "many"})
    assert response.status_code == 400
    assert response.json()["detail"] == {"CLUSTER_SIGNATURE_TOKENS": "Must be a whole number."}


async def _longest_loop_stall(work, hold_seconds: float, lock: threading.Lock):
    """Run ``work`` while another thread holds ``lock``; return its result and the longest tick gap."""
    gaps: list[float] = []
    done = asyncio.Event()

    async def ticker() -> None:
        last = time.perf_counter()
        while not done.is_set():
            await asyncio.sleep(0.01)
            now = time.perf_counter()
            gaps.append(now - last)
            last = now

    lock.acquire()
    timer = threading.Timer(hold_seconds, lock.release)
    timer.start()
    ticks = asyncio.create_task(ticker())
    try:
        result = await work()
    finally:
        done.set()
        await ticks
        timer.join()
    return result, max(gaps)


def test_rule_reapply_waits_off_the_event_loop(tmp_path: Path) -> None:
    real = LedgerService(data_dir=str(tmp_path))

    result, stall = asyncio.run(
        _longest_loop_stall(lambda: rule_routes.reapply_rules(real), 0.5, real._lock)
    )

    assert result == {"changed": 0}
    assert stall < 0.2


def test_category_update_waits_off_the_event_loop(tmp_path: Path) -> None:
    real = LedgerService(data_dir=str(tmp_path))
    _, stored = real.record_import("jan.csv", ImportPipeline(service=real).parse(STATEMENT.encode()).transactions)

    updated, stall = asyncio.run(
        _longest_loop_stall(
            lambda: transaction_routes.update_category(
                stored[0].id, CategoryUpdateRequest(category="Fun"), real
            ),
            0.5,
            real._lock,
        )
    )

    assert updated.category == "Fun"
    assert updated.manual is True
    assert stall < 0.2
