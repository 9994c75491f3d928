import json
import re
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from models import CATEGORY_LABELS
from remote_store import RemoteStoreClient

BASE_URL = "http://testserver"
_OBJECT_ID = re.compile(r"^[0-9a-fA-F]{24}$")


class FakeStore:
    """In-memory stand-in for the remote REST store.

    ``canned`` short-circuits a (method, resource) pair with a fixed status
    and raw body; ``calls`` records every request in arrival order.
    """

    def __init__(self) -> None:
        self.transactions: list[dict[str, Any]] = []
        self.budgets: list[dict[str, Any]] = []
        self.canned: dict[tuple[str, str], tuple[int, str]] = {}
        self.calls: list[tuple[str, str]] = []
        self.on_request: Optional[Callable[[str, str], None]] = None
        self._seq = 0

    def new_id(self) -> str:
        self._seq += 1
        return f"{self._seq:024x}"

    def respond(self, method: str, resource: str, status: int, body: Any = None) -> None:
        raw = body if isinstance(body, str) else json.dumps(body)
        self.canned[(method, resource)] = (status, raw)

    def fail(self, method: str, resource: str, status: int = 500, error: str = "boom") -> None:
        self.respond(method, resource, status, {"error": error})

    def seed_transaction(self, amount: float, date: str, description: str, category: str) -> dict[str, Any]:
        record = {
            "_id": self.new_id(),
            "amount": amount,
            "date": f"{date}T00:00:00.000Z",
            "description": description,
            "category": category,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        self.transactions.append(record)
        return record

    def seed_budget(self, category: str, amount: float, month: str) -> dict[str, Any]:
        record = {"_id": self.new_id(), "category": category, "amount": amount, "month": month}
        self.budgets.append(record)
        return record

    def count(self, method: str, resource: str) -> int:
        return self.calls.count((method, resource))


def build_app(store: FakeStore) -> FastAPI:
    app = FastAPI()

    @app.middleware("http")
    async def record_calls(request: Request, call_next):
        key = (request.method, request.url.path.strip("/"))
        store.calls.append(key)
        if store.on_request is not None:
            store.on_request(*key)
        if key in store.canned:
            status, raw = store.canned[key]
            return Response(content=raw, status_code=status, media_type="application/json")
        return await call_next(request)

    @app.get("/transactions")
    async def list_transactions():
        return sorted(store.transactions, key=lambda t: t["date"], reverse=True)

    @app.post("/transactions")
    async def create_transaction(request: Request):
        body = await request.json()
        if not all(body.get(k) for k in ("amount", "date", "description", "category")):
            return JSONResponse({"error": "Missing required fields"}, status_code=400)
        return store.seed_transaction(
            float(body["amount"]), body["date"][:10], body["description"], body["category"]
        )

    @app.put("/transactions")
    async def update_transaction(request: Request):
        body = await request.json()
        record_id = body.pop("_id", None)
        if not record_id:
            return JSONResponse({"error": "Missing transaction ID"}, status_code=400)
        if not _OBJECT_ID.match(record_id):
            return JSONResponse({"error": "Invalid transaction ID format"}, status_code=400)
        for txn in store.transactions:
            if txn["_id"] == record_id:
                txn.update(body, date=f"{body['date'][:10]}T00:00:00.000Z")
                return {"message": "Transaction updated"}
        return JSONResponse({"error": "Transaction not found"}, status_code=404)

    @app.delete("/transactions")
    async def delete_transaction(request: Request):
        record_id = (await request.json()).get("id")
        if not record_id:
            return JSONResponse({"error": "Missing transaction ID"}, status_code=400)
        for txn in list(store.transactions):
            if txn["_id"] == record_id:
                store.transactions.remove(txn)
                return {"message": "Transaction deleted"}
        return JSONResponse({"error": "Transaction not found"}, status_code=404)

    @app.get("/budgets")
    async def list_budgets():
        return store.budgets

    @app.post("/budgets")
    async def create_budget(request: Request):
        body = await request.json()
        if not all(body.get(k) for k in ("category", "amount", "month")):
            return JSONResponse({"error": "Missing required fields"}, status_code=400)
        return store.seed_budget(body["category"], float(body["amount"]), body["month"])

    @app.get("/categories")
    async def list_categories():
        return list(CATEGORY_LABELS)

    return app


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def client(store: FakeStore) -> RemoteStoreClient:
    return RemoteStoreClient(BASE_URL, transport=httpx.ASGITransport(app=build_app(store)))
