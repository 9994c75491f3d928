from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from config import get_settings

logger = logging.getLogger(__name__)

RESOURCES = ("transactions", "budgets", "categories")

_SINGULAR = {
    "transactions": "transaction",
    "budgets": "budget",
    "categories": "category",
}


class RemoteStoreError(RuntimeError):
    def __init__(
        self, message: str, *, resource: str, status_code: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.resource = resource
        self.status_code = status_code


class ConnectivityError(RemoteStoreError):
    """5xx response or the request never reached the store."""


class NotFoundError(RemoteStoreError):
    pass


class RequestRejected(RemoteStoreError):
    pass


class ShapeError(RemoteStoreError):
    """Response body is not JSON or not the structure the caller expects."""


def _server_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None


def _error_for_status(
    response: httpx.Response, *, resource: str, default_message: str
) -> RemoteStoreError:
    status = response.status_code
    message = _server_message(response) or default_message
    if status >= 500:
        return ConnectivityError(message, resource=resource, status_code=status)
    if status == 404:
        return NotFoundError(message, resource=resource, status_code=status)
    return RequestRejected(message, resource=resource, status_code=status)


class ResourceCollection:
    """List/create/update/delete against one collection of the remote store.

    Every call is a single request: it either returns the parsed body or
    raises a ``RemoteStoreError``. Retrying is left to the caller.
    """

    def __init__(self, http: httpx.AsyncClient, resource: str) -> None:
        self._http = http
        self.resource = resource
        self.singular = _SINGULAR.get(resource, resource)

    async def list(self) -> list[Any]:
        payload = await self._send("GET", default_message=f"Failed to fetch {self.resource}")
        if not isinstance(payload, list):
            raise ShapeError(
                f"Invalid {self.resource} data received from server",
                resource=self.resource,
            )
        return payload

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = await self._send(
            "POST", json=payload, default_message=f"Failed to save {self.singular}"
        )
        if not isinstance(body, dict):
            raise ShapeError(
                f"Invalid {self.singular} data received from server",
                resource=self.resource,
            )
        return body

    async def update(self, payload: dict[str, Any]) -> Any:
        return await self._send(
            "PUT", json=payload, default_message=f"Failed to update {self.singular}"
        )

    async def delete(self, record_id: str) -> Any:
        return await self._send(
            "DELETE",
            json={"id": record_id},
            default_message=f"Failed to delete {self.singular}",
        )

    async def _send(
        self,
        method: str,
        *,
        default_message: str,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        path = f"/{self.resource}"
        logger.debug(f"remote_request: method={method} path={path}")
        try:
            response = await self._http.request(method, path, json=json)
        except httpx.DecodingError as exc:
            logger.warning(
                f"remote_undecodable: method={method} path={path} error={exc!r}"
            )
            raise ShapeError(
                f"Invalid {self.resource} data received from server",
                resource=self.resource,
            ) from exc
        except httpx.RequestError as exc:
            logger.warning(
                f"remote_unreachable: method={method} path={path} error={exc!r}"
            )
            raise ConnectivityError(
                f"Could not reach the {self.resource} service",
                resource=self.resource,
            ) from exc

        if not response.is_success:
            error = _error_for_status(
                response, resource=self.resource, default_message=default_message
            )
            logger.warning(
                f"remote_failed: method={method} path={path} "
                f"status={response.status_code} error={error.message!r}"
            )
            raise error

        try:
            return response.json()
        except ValueError as exc:
            raise ShapeError(
                f"Invalid {self.resource} data received from server",
                resource=self.resource,
                status_code=response.status_code,
            ) from exc


class RemoteStoreClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self._http = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=settings.api_timeout_secs if timeout is None else timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self.transactions = ResourceCollection(self._http, "transactions")
        self.budgets = ResourceCollection(self._http, "budgets")
        self.categories = ResourceCollection(self._http, "categories")

    async def __aenter__(self) -> "RemoteStoreClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def list_transactions(self) -> list[Any]:
        return await self.transactions.list()

    async def create_transaction(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.transactions.create(payload)

    async def update_transaction(self, payload: dict[str, Any]) -> Any:
        return await self.transactions.update(payload)

    async def delete_transaction(self, record_id: str) -> Any:
        return await self.transactions.delete(record_id)

    async def list_budgets(self) -> list[Any]:
        return await self.budgets.list()

    async def create_budget(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.budgets.create(payload)

    async def list_categories(self) -> list[Any]:
        return await self.categories.list()
