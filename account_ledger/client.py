"""
Ledger API Client Module

REST client for the account ledger API.
"""

import httpx
import logging
from typing import Any, Dict, List, Optional, Union
from decimal import Decimal

logger = logging.getLogger("ledger.client")

Number = Union[int, str]
Amount = Union[Decimal, int, float, str]


class LedgerClientError(Exception):
    """Non-2xx response from the ledger API"""

    def __init__(self, status_code: int, detail: str, code: Optional[str] = None):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
        self.code = code


class LedgerClient:
    """REST client for the account ledger API"""

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self._client.request(method, path, json=json)
        if response.is_success:
            return response.json()

        try:
            body = response.json()
            detail, code = body.get("detail", response.text), body.get("code")
        except ValueError:
            detail, code = response.text, None
        logger.warning(f"Ledger API returned {response.status_code} for {method} {path}: {detail}")
        raise LedgerClientError(response.status_code, str(detail), code)

    def create_account(self, number: Number, account_type: str, balance: Optional[Amount] = None) -> Dict[str, Any]:
        payload = {"number": int(number), "type": account_type}
        if balance is not None:
            payload["balance"] = str(balance)
        return self._request("POST", "/accounts", payload)["account"]

    def get_account(self, number: Number) -> Dict[str, Any]:
        return self._request("GET", f"/accounts/{number}")

    def get_balance(self, number: Number) -> Decimal:
        return Decimal(self._request("GET", f"/accounts/{number}/balance")["balance"])

    def debit(self, number: Number, amount: Amount) -> Dict[str, Any]:
        return self._request("PATCH", f"/accounts/{number}/debit", {"amount": str(amount)})["updated_account"]

    def credit(self, number: Number, amount: Amount) -> Dict[str, Any]:
        return self._request("PATCH", f"/accounts/{number}/credit", {"amount": str(amount)})["updated_account"]

    def transfer(self, from_number: Number, to_number: Number, amount: Amount) -> Dict[str, Any]:
        data = self._request(
            "PATCH", f"/accounts/{from_number}/transfer",
            {"to": int(to_number), "amount": str(amount)}
        )
        return {"from_account": data["from_account"], "to_account": data["to_account"]}

    def yield_interest_for_account(self, number: Number, rate: Amount) -> Dict[str, Any]:
        return self._request("PATCH", f"/accounts/{number}/interest", {"rate": str(rate)})["updated_account"]

    def yield_interest_for_all_savings(self, rate: Amount) -> List[Dict[str, Any]]:
        return self._request("PATCH", "/accounts/interest", {"rate": str(rate)})["updated_accounts"]

    def health_check(self) -> bool:
        try:
            return self._client.get("/health").status_code == 200
        except httpx.HTTPError:
            return False

    def close(self):
        """Close the HTTP client"""
        self._client.close()
