"""Ledger sink interface and HTTP implementation.

Defines the LedgerSink protocol the importer talks to, plus two
implementations:
- HttpLedgerSink: calls an actual-http-api server via httpx.
- NullLedgerSink: empty, write-nothing sink (for --dry-run mode).

Records cross this boundary as plain dicts in the ledger's wire shape
(see :meth:`ws_actual.models.ImportRecord.to_dict`), so nothing here
imports from the rest of the package.
"""

from __future__ import annotations

import logging
import os
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """The ledger could not be reached or rejected a request."""


class LedgerSink(Protocol):
    """Protocol for the budgeting ledger that receives imports.

    Account dicts carry ``id``, ``name``, ``closed`` and ``offbudget``.
    Payee dicts carry ``id``, ``name`` and, for the ledger's own transfer
    payees, ``transfer_acct`` (the account the payee transfers to).
    """

    def list_accounts(self) -> list[dict]:
        ...

    def list_payees(self) -> list[dict]:
        ...

    def batch_import(self, account_id: str, records: list[dict]) -> dict:
        """Import *records* into one account.

        Returns:
            ``{"added": [ids], "updated": [ids], "errors": [...]}``.

        Raises:
            LedgerError: If the batch could not be imported at all.
        """
        ...

    def account_balance(self, account_id: str) -> int:
        """Current balance of *account_id* in cents."""
        ...


class HttpLedgerSink:
    """Ledger sink backed by the actual-http-api REST server.

    Reads the API key from the environment variable named in config
    (``api_key_env``).  Every endpoint lives under
    ``{base_url}/v1/budgets/{budget_sync_id}`` and wraps its payload in
    ``{"data": ...}``.

    Any transport error, HTTP error status, or malformed body raises
    :class:`LedgerError`; the importer isolates those per account.

    Args:
        base_url: Server URL, e.g. ``"http://localhost:5007"``.
        budget_sync_id: Sync ID of the budget.
        api_key_env: Name of the environment variable holding the API key.
        timeout: HTTP request timeout in seconds. Default: 30.
    """

    def __init__(
        self,
        base_url: str,
        budget_sync_id: str,
        api_key_env: str = "ACTUAL_API_KEY",
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.budget_sync_id = budget_sync_id
        self.api_key_env = api_key_env
        self.timeout = timeout

    def list_accounts(self) -> list[dict]:
        return self._get("/accounts")

    def list_payees(self) -> list[dict]:
        return self._get("/payees")

    def batch_import(self, account_id: str, records: list[dict]) -> dict:
        data = self._post(
            f"/accounts/{account_id}/transactions/import",
            {"transactions": records},
        )
        if not isinstance(data, dict):
            raise LedgerError("Unexpected import response from ledger")
        return {
            "added": list(data.get("added") or []),
            "updated": list(data.get("updated") or []),
            "errors": list(data.get("errors") or []),
        }

    def account_balance(self, account_id: str) -> int:
        return int(self._get(f"/accounts/{account_id}/balance") or 0)

    # -- HTTP helpers ---------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.base_url}/v1/budgets/{self.budget_sync_id}{path}"

    def _headers(self) -> dict[str, str]:
        api_key = os.environ.get(self.api_key_env, "")
        if not api_key:
            raise LedgerError(
                f"Ledger API key not found in environment variable '{self.api_key_env}'"
            )
        return {"x-api-key": api_key, "accept": "application/json"}

    def _get(self, path: str):
        url = self._url(path)
        logger.debug("GET %s", url)
        try:
            response = httpx.get(url, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise LedgerError(
                f"Ledger returned HTTP {exc.response.status_code} for {path}: "
                f"{exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LedgerError(f"Ledger request failed for {path}: {exc}") from exc
        return self._data(response, path)

    def _post(self, path: str, body: dict):
        url = self._url(path)
        logger.debug("POST %s", url)
        try:
            response = httpx.post(url, json=body, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise LedgerError(
                f"Ledger returned HTTP {exc.response.status_code} for {path}: "
                f"{exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LedgerError(f"Ledger request failed for {path}: {exc}") from exc
        return self._data(response, path)

    @staticmethod
    def _data(response: httpx.Response, path: str):
        try:
            body = response.json()
        except ValueError as exc:
            raise LedgerError(f"Ledger returned invalid JSON for {path}") from exc
        if not isinstance(body, dict) or "data" not in body:
            raise LedgerError(f"Ledger response for {path} has no 'data' field")
        return body["data"]


class NullLedgerSink:
    """No-op ledger for --dry-run mode.

    Reports no accounts or payees and imports nothing.  Every batch comes
    back with empty tallies.
    """

    def list_accounts(self) -> list[dict]:
        return []

    def list_payees(self) -> list[dict]:
        return []

    def batch_import(self, account_id: str, records: list[dict]) -> dict:
        return {"added": [], "updated": [], "errors": []}

    def account_balance(self, account_id: str) -> int:
        return 0
