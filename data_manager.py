"""Client-side store that applies writes optimistically and reconciles them
with the remote store once the request settles.

All snapshot changes go through ``_replace``/``_update``, which compute the
new snapshot from the current one and swap it in without awaiting, so two
coroutines never interleave a read-modify-write of the snapshot. Mutations
that overlap on the *same* record still race: whichever request settles last
decides the final state.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from models import (
    Budget,
    Category,
    OperationResult,
    Snapshot,
    Transaction,
    is_temporary_id,
    is_valid_object_id,
    new_temporary_id,
)
from remote_store import (
    RESOURCES,
    ConnectivityError,
    RemoteStoreClient,
    RemoteStoreError,
    ShapeError,
)
from schemas import BudgetIn, TransactionIn

logger = logging.getLogger(__name__)

CONNECTIVITY_MESSAGE = (
    "Internet connection appears to be down. "
    "Please check your connection and try again."
)
ALL_UNAVAILABLE_MESSAGE = "All services are currently unavailable. Please try again later."
MISSING_ID_MESSAGE = "Cannot modify a transaction without an identifier."
UNSAVED_EDIT_MESSAGE = (
    "Cannot edit a transaction that hasn't been saved yet. "
    "Please save the transaction first."
)
UNSAVED_DELETE_MESSAGE = (
    "Cannot delete a transaction that hasn't been saved yet. "
    "Please wait for it to be saved first."
)
INVALID_ID_MESSAGE = (
    "Invalid transaction ID format. Please refresh the page and try again."
)

Listener = Callable[[Snapshot], None]

_PAYLOAD_ADAPTERS: dict[str, TypeAdapter] = {
    "transactions": TypeAdapter(list[Transaction]),
    "budgets": TypeAdapter(list[Budget]),
    "categories": TypeAdapter(list[Category]),
}


def classify_fetch_failures(failures: Mapping[str, RemoteStoreError]) -> Optional[str]:
    """Collapse per-resource load failures into the single message shown to the user."""
    if not failures:
        return None
    if any(isinstance(exc, ConnectivityError) for exc in failures.values()):
        return CONNECTIVITY_MESSAGE
    failed = [name for name in RESOURCES if name in failures]
    if len(failed) == len(RESOURCES):
        return ALL_UNAVAILABLE_MESSAGE
    if all(isinstance(failures[name], ShapeError) for name in failed):
        return failures[failed[0]].message
    return f"Failed to load {', '.join(failed)}. Some data may be unavailable."


def _confirmed(model: type[BaseModel], body: Any, resource: str) -> Any:
    try:
        record = model.model_validate(body)
    except ValidationError as exc:
        raise ShapeError(
            f"Invalid {resource} data received from server", resource=resource
        ) from exc
    if not is_valid_object_id(record.id):
        raise ShapeError(
            f"Invalid {resource} data received from server", resource=resource
        )
    return record


class DataManager:
    def __init__(self, client: RemoteStoreClient) -> None:
        self.client = client
        self._snapshot = Snapshot()
        self._listeners: list[Listener] = []
        self._is_fetching = False

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _replace(self, snapshot: Snapshot) -> Snapshot:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    def _update(self, **changes: Any) -> Snapshot:
        return self._replace(replace(self._snapshot, **changes))

    def _fail(self, message: str, **changes: Any) -> OperationResult:
        self._update(error=message, is_error_modal_open=True, **changes)
        return OperationResult(ok=False, error=message)

    async def fetch_all(self, *, force: bool = False) -> OperationResult:
        if self._is_fetching:
            logger.debug("fetch_all: skipped reason=in_flight")
            return OperationResult(ok=True, skipped=True)
        if not force and self._snapshot.has_loaded and self._snapshot.transactions:
            logger.debug("fetch_all: skipped reason=cached")
            return OperationResult(ok=True, skipped=True)

        self._is_fetching = True
        try:
            self._update(is_loading=True, error=None)
            results = await asyncio.gather(
                self.client.list_transactions(),
                self.client.list_budgets(),
                self.client.list_categories(),
                return_exceptions=True,
            )

            payloads: dict[str, list[Any]] = {}
            failures: dict[str, RemoteStoreError] = {}
            for resource, result in zip(RESOURCES, results):
                if isinstance(result, RemoteStoreError):
                    failures[resource] = result
                elif isinstance(result, BaseException):
                    raise result
                else:
                    payloads[resource] = result

            message = classify_fetch_failures(failures)
            if message is None:
                parsed: dict[str, tuple[Any, ...]] = {}
                for resource in RESOURCES:
                    try:
                        parsed[resource] = tuple(
                            _PAYLOAD_ADAPTERS[resource].validate_python(payloads[resource])
                        )
                    except ValidationError:
                        message = f"Invalid {resource} data received from server"
                        break

            if message is not None:
                logger.warning(
                    f"fetch_all: failed resources={sorted(failures)} error={message!r}"
                )
                self._update(is_loading=False, error=message, is_error_modal_open=True)
                return OperationResult(ok=False, error=message)

            self._replace(
                Snapshot(
                    transactions=parsed["transactions"],
                    budgets=parsed["budgets"],
                    categories=tuple(c.value for c in parsed["categories"]),
                    is_loading=False,
                    error=None,
                    is_error_modal_open=False,
                    has_loaded=True,
                )
            )
            logger.info(
                f"fetch_all: loaded transactions={len(parsed['transactions'])} "
                f"budgets={len(parsed['budgets'])}"
            )
            return OperationResult(ok=True)
        finally:
            self._is_fetching = False

    async def refresh(self) -> OperationResult:
        return await self.fetch_all(force=True)

    async def add_transaction(
        self, data: Union[TransactionIn, Mapping[str, Any]]
    ) -> OperationResult:
        """Append a provisional transaction, then confirm or drop it.

        Raw mappings are validated first; a ``ValidationError`` propagates to
        the caller and nothing is sent.
        """
        if not isinstance(data, TransactionIn):
            data = TransactionIn.model_validate(data)
        return await self._add(
            "transactions",
            data,
            self.client.create_transaction,
            Transaction,
            new_temporary_id(),
        )

    async def add_budget(self, data: Union[BudgetIn, Mapping[str, Any]]) -> OperationResult:
        if not isinstance(data, BudgetIn):
            data = BudgetIn.model_validate(data)
        return await self._add(
            "budgets",
            data,
            self.client.create_budget,
            Budget,
            new_temporary_id("budget"),
        )

    async def _add(
        self,
        field_name: str,
        data: Union[TransactionIn, BudgetIn],
        create: Callable[[dict[str, Any]], Awaitable[dict[str, Any]]],
        model: type[BaseModel],
        temp_id: str,
    ) -> OperationResult:
        provisional = data.to_record(temp_id)
        self._update(**{field_name: getattr(self._snapshot, field_name) + (provisional,)})

        try:
            saved = _confirmed(model, await create(data.to_payload()), field_name)
        except RemoteStoreError as exc:
            logger.warning(f"create_rolled_back: resource={field_name} temp_id={temp_id}")
            remaining = tuple(
                r for r in getattr(self._snapshot, field_name) if r.id != temp_id
            )
            return self._fail(exc.message, **{field_name: remaining})

        records = getattr(self._snapshot, field_name)
        if any(r.id == temp_id for r in records):
            confirmed = tuple(saved if r.id == temp_id else r for r in records)
        elif any(r.id == saved.id for r in records):
            confirmed = records
        else:
            # A reload replaced the snapshot while the create was in flight.
            confirmed = records + (saved,)
        self._update(**{field_name: confirmed})
        logger.info(f"create_confirmed: resource={field_name} id={saved.id}")
        return OperationResult(ok=True, record=saved)

    async def update_transaction(
        self, record: Union[Transaction, Mapping[str, Any]]
    ) -> OperationResult:
        if not isinstance(record, Transaction):
            record = Transaction.model_validate(record)
        if not record.id:
            return self._fail(MISSING_ID_MESSAGE)
        if is_temporary_id(record.id):
            return self._fail(UNSAVED_EDIT_MESSAGE)
        if not is_valid_object_id(record.id):
            return self._fail(INVALID_ID_MESSAGE)

        original = self._snapshot.find_transaction(record.id)
        self._update(
            transactions=tuple(
                record if t.id == record.id else t for t in self._snapshot.transactions
            )
        )

        try:
            # The store acknowledges with {message}; the optimistic copy stays final.
            await self.client.update_transaction(record.to_payload())
        except RemoteStoreError as exc:
            logger.warning(f"update_rolled_back: id={record.id} error={exc.message!r}")
            if original is None:
                return self._fail(exc.message)
            restored = tuple(
                original if t.id == record.id else t for t in self._snapshot.transactions
            )
            return self._fail(exc.message, transactions=restored)

        logger.info(f"update_confirmed: id={record.id}")
        return OperationResult(ok=True, record=record)

    async def delete_transaction(self, transaction_id: str) -> OperationResult:
        if not transaction_id:
            return self._fail(MISSING_ID_MESSAGE)
        if is_temporary_id(transaction_id):
            return self._fail(UNSAVED_DELETE_MESSAGE)

        original = self._snapshot.find_transaction(transaction_id)
        self._update(
            transactions=tuple(
                t for t in self._snapshot.transactions if t.id != transaction_id
            )
        )

        try:
            await self.client.delete_transaction(transaction_id)
        except RemoteStoreError as exc:
            logger.warning(f"delete_rolled_back: id={transaction_id} error={exc.message!r}")
            if original is None:
                return self._fail(exc.message)
            # Reinserted at the end; the original position is not kept.
            return self._fail(
                exc.message, transactions=self._snapshot.transactions + (original,)
            )

        logger.info(f"delete_confirmed: id={transaction_id}")
        return OperationResult(ok=True, record=original)

    def dismiss_error(self) -> None:
        self._update(is_error_modal_open=False)
