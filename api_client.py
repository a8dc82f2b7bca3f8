from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from config import get_settings
from schemas import RecurringScope

logger = logging.getLogger(__name__)

Params = Optional[Mapping[str, Any]]


class ApiError(RuntimeError):
    def __init__(
        self, message: str, *, status: Optional[int] = None, detail: Any = None
    ) -> None:
        super().__init__(message)
        self.status = status
        self.detail = detail


def _query(params: Params) -> str:
    if not params:
        return ""
    clean = {
        k: (v.value if hasattr(v, "value") else v)
        for k, v in params.items()
        if v is not None
    }
    return f"?{urlencode(clean)}" if clean else ""


def _decode(raw: bytes) -> Any:
    if not raw:
        return None
    return json.loads(raw.decode("utf-8"))


def as_list(payload: Any, key: Optional[str] = None) -> list:
    """Unwrap list responses served either bare or under ``key``."""
    if isinstance(payload, list):
        return payload
    if key and isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]
    return []


class ApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.token = settings.api_token if token is None else token
        self.timeout = settings.api_timeout_secs if timeout is None else timeout

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Params = None,
        payload: Any = None,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}{_query(params)}"
        headers = {"Accept": "application/json"}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        req = Request(url, data=data, headers=headers, method=method)

        try:
            with urlopen(req, timeout=self.timeout) as resp:
                status = getattr(resp, "status", 200)
                raw = resp.read()
        except HTTPError as exc:
            detail = None
            try:
                detail = _decode(exc.read())
            except ValueError:
                detail = None
            logger.warning(
                f"api_request_failed: method={method} path={path} status={exc.code}"
            )
            raise ApiError(
                f"{method} {path} failed with status {exc.code}",
                status=exc.code,
                detail=detail,
            ) from exc
        except (URLError, TimeoutError) as exc:
            logger.warning(f"api_unreachable: method={method} path={path} error={exc}")
            raise ApiError(f"{method} {path} could not reach the API") from exc

        logger.debug(f"api_request: method={method} path={path} status={status}")
        try:
            return _decode(raw)
        except ValueError as exc:
            raise ApiError(
                f"{method} {path} returned invalid JSON", status=status
            ) from exc

    def get(self, path: str, params: Params = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, payload: Any = None, params: Params = None) -> Any:
        return self.request("POST", path, params=params, payload=payload)

    def patch(self, path: str, payload: Any = None, params: Params = None) -> Any:
        return self.request("PATCH", path, params=params, payload=payload)

    def put(self, path: str, payload: Any = None, params: Params = None) -> Any:
        return self.request("PUT", path, params=params, payload=payload)

    def delete(self, path: str, params: Params = None) -> Any:
        return self.request("DELETE", path, params=params)

    # Transactions

    def transactions(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        wallet_id: Optional[int] = None,
    ) -> list:
        params = {"dateFrom": date_from, "dateTo": date_to, "walletId": wallet_id}
        return as_list(self.get("/transactions", params), "transactions")

    def transaction(self, transaction_id: int) -> Any:
        return self.get(f"/transactions/{transaction_id}")

    def create_transaction(self, payload: Mapping[str, Any]) -> Any:
        return self.post("/transactions", dict(payload))

    def update_transaction(
        self,
        transaction_id: int,
        payload: Mapping[str, Any],
        scope: Optional[RecurringScope] = None,
    ) -> Any:
        return self.patch(
            f"/transactions/{transaction_id}", dict(payload), {"scope": scope}
        )

    def delete_transaction(
        self, transaction_id: int, scope: Optional[RecurringScope] = None
    ) -> Any:
        return self.delete(f"/transactions/{transaction_id}", {"scope": scope})

    # Wallets and categories

    def wallets(self) -> list:
        return as_list(self.get("/wallets"), "wallets")

    def categories(self) -> list:
        return as_list(self.get("/categories"), "categories")

    def create_category(self, payload: Mapping[str, Any]) -> Any:
        return self.post("/categories", dict(payload))

    def update_category(self, category_id: int, payload: Mapping[str, Any]) -> Any:
        return self.patch(f"/categories/{category_id}", dict(payload))

    def reorder_categories(self, payload: Mapping[str, Any]) -> Any:
        return self.patch("/categories/reorder", dict(payload))

    # Manual month overrides

    def manual_months(self) -> list:
        return as_list(self.get("/manual-month"), "rows")

    def upsert_manual_month(self, payload: Mapping[str, Any]) -> Any:
        return self.post("/manual-month", dict(payload))

    def delete_manual_month(self, year: int, month: int) -> Any:
        return self.delete(f"/manual-month/{year}/{month}")

    # Investments

    def investment_assets(self) -> list:
        return as_list(self.get("/investments/assets"), "assets")

    def investment_asset(self, asset_id: int) -> Any:
        return self.get(f"/investments/assets/{asset_id}")

    def investment_asset_series(self, asset_id: int) -> list:
        return as_list(self.get(f"/investments/assets/{asset_id}/series"))

    def investment_summary(self) -> Any:
        return self.get("/investments/summary")

    def investment_timeline(self, days: int) -> list:
        return as_list(self.get("/investments/timeline", {"days": days}), "points")

    def investment_valuations(self, asset_id: Optional[int] = None) -> list:
        return as_list(
            self.get("/investments/valuations", {"assetId": asset_id}), "valuations"
        )

    def investment_operations(self, asset_id: Optional[int] = None) -> list:
        return as_list(
            self.get("/investments/operations", {"assetId": asset_id}), "operations"
        )

    def investment_swap(self, payload: Mapping[str, Any]) -> Any:
        return self.post("/investments/swap", dict(payload))

    def investment_action(
        self, asset_id: int, action: str, payload: Mapping[str, Any]
    ) -> Any:
        if action not in ("buy", "sell", "deposit", "withdraw"):
            raise ValueError(f"Unknown investment action: {action!r}")
        return self.post(f"/investments/{asset_id}/{action}", dict(payload))

    # Trips

    def trips(self) -> list:
        return as_list(self.get("/trips"), "trips")

    def trip(self, trip_id: int) -> Any:
        return self.get(f"/trips/{trip_id}")

    def create_trip(self, payload: Mapping[str, Any]) -> Any:
        return self.post("/trips", dict(payload))

    def update_trip(self, trip_id: int, payload: Mapping[str, Any]) -> Any:
        return self.patch(f"/trips/{trip_id}", dict(payload))

    def delete_trip(self, trip_id: int) -> Any:
        return self.delete(f"/trips/{trip_id}")
