from typing import Any, Optional

import pytest

from api_client import ApiError


class FakeClient:
    """In-memory stand-in for ``ApiClient`` recording every write."""

    def __init__(self) -> None:
        self.wallet_rows: list[dict[str, Any]] = []
        self.transaction_rows: list[dict[str, Any]] = []
        self.manual_rows: list[dict[str, Any]] = []
        self.summary: dict[str, Any] = {}
        self.timeline: list[dict[str, Any]] = []
        self.assets: dict[int, dict[str, Any]] = {}
        self.asset_series: list[dict[str, Any]] = []
        self.valuation_rows: list[dict[str, Any]] = []
        self.operation_rows: list[dict[str, Any]] = []
        self.fail_with: Optional[ApiError] = None
        self.calls: list[tuple] = []

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def wallets(self) -> list:
        self._check()
        return self.wallet_rows

    def transactions(self, date_from=None, date_to=None, wallet_id=None) -> list:
        self._check()
        self.calls.append(("transactions", date_from, date_to, wallet_id))
        return self.transaction_rows

    def transaction(self, transaction_id: int) -> Any:
        self._check()
        for row in self.transaction_rows:
            if row.get("id") == transaction_id:
                return row
        raise ApiError("not found", status=404)

    def create_transaction(self, payload) -> Any:
        self._check()
        self.calls.append(("create", dict(payload)))
        return {"id": 100, **payload}

    def update_transaction(self, transaction_id, payload, scope=None) -> Any:
        self._check()
        self.calls.append(("update", transaction_id, dict(payload), scope))
        return {"id": transaction_id, **payload}

    def delete_transaction(self, transaction_id, scope=None) -> Any:
        self._check()
        self.calls.append(("delete", transaction_id, scope))
        return None

    def manual_months(self) -> list:
        self._check()
        return self.manual_rows

    def investment_summary(self) -> Any:
        self._check()
        return self.summary

    def investment_timeline(self, days: int) -> list:
        self._check()
        self.calls.append(("timeline", days))
        return self.timeline

    def investment_asset(self, asset_id: int) -> Any:
        self._check()
        if asset_id not in self.assets:
            raise ApiError("not found", status=404)
        return self.assets[asset_id]

    def investment_asset_series(self, asset_id: int) -> list:
        self._check()
        return self.asset_series

    def investment_valuations(self, asset_id=None) -> list:
        self._check()
        return self.valuation_rows

    def investment_operations(self, asset_id=None) -> list:
        self._check()
        return self.operation_rows


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
