import logging
from dataclasses import asdict
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from api_client import ApiClient, ApiError
from charts import (
    PORTFOLIO_CANVAS,
    WEALTH_CANVAS,
    LineChart,
    build_bar_chart,
    crosshair_path,
)
from config import get_settings
from csrf import generate_csrf_token, validate_csrf_token
from formatting import (
    date_label,
    format_axis_number,
    format_euro,
    format_number,
    format_percent,
)
from overlay import (
    DUAL_LINE_TOOLTIP,
    SINGLE_LINE_TOOLTIP,
    MouseEvent,
    PointerSource,
    TouchEvent,
    resolve_bar_hover,
    resolve_line_hover,
)
from periods import (
    Period,
    local_today,
    parse_record_date,
    resolve_period,
    to_iso_week_value,
)
from schemas import (
    BarPoint,
    RecurringScope,
    TransactionIn,
    TransactionPrefill,
    TransactionRecord,
)
from services import (
    DashboardService,
    InvestmentDetailService,
    PortfolioService,
    RegisterService,
)
from tx_editor import TransactionEditor

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Dashboard")
app.mount("/static", StaticFiles(directory="static"), name="static")
templates = Jinja2Templates(directory="templates")

templates.env.filters["euro"] = format_euro
templates.env.filters["percent"] = format_percent
templates.env.filters["number"] = format_number
templates.env.filters["axis"] = format_axis_number
templates.env.filters["date_label"] = lambda value: date_label(parse_record_date(value))
templates.env.globals["csrf_token"] = generate_csrf_token


def static_path(path: str) -> str:
    return app.url_path_for("static", path=path)


templates.env.globals["static_path"] = static_path


def get_client() -> ApiClient:
    return ApiClient()


def get_editor(client: ApiClient = Depends(get_client)) -> TransactionEditor:
    return TransactionEditor(client)


def period_from_request(request: Request) -> Period:
    params = request.query_params
    try:
        return resolve_period(
            params.get("range"), params.get("value"), params.get("from"), params.get("to")
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _int_param(request: Request, name: str) -> Optional[int]:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}") from exc


def _float_param(request: Request, name: str, default: float = 0.0) -> float:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}") from exc


def render(
    request: Request, template: str, context: dict[str, object], status_code: int = 200
) -> HTMLResponse:
    ctx = {"request": request}
    ctx.update(context)
    return templates.TemplateResponse(
        request=request, name=template, context=ctx, status_code=status_code
    )


def period_payload(period: Period) -> dict[str, object]:
    return {
        "range": period.slug,
        "start": period.start.isoformat(),
        "end": period.end.isoformat(),
        "label": period.label,
    }


def line_chart_payload(chart: Optional[LineChart]) -> Optional[dict[str, object]]:
    if chart is None:
        return None
    return {
        "width": chart.canvas.width,
        "height": chart.canvas.height,
        "min": chart.scale.min_value,
        "max": chart.scale.max_value,
        "grid": chart.grid,
        "series": [
            {"path": s.path, "area": s.area, "points": s.points} for s in chart.series
        ],
    }


def dashboard_view(request: Request, client: ApiClient):
    params = request.query_params
    period = period_from_request(request)
    try:
        return DashboardService(client).load(
            period,
            params.get("graph") or "expense",
            wallet_id=_int_param(request, "wallet_id"),
            query=params.get("q"),
            category=params.get("category"),
            chart_width=_float_param(request, "width", 760),
            active_slice=_int_param(request, "slice"),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def portfolio_view(request: Request, client: ApiClient):
    params = request.query_params
    try:
        return PortfolioService(client).load(
            params.get("range") or "ALL",
            params.get("tab") or "value",
            query=params.get("q"),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/", response_class=HTMLResponse)
def dashboard(request: Request, client: ApiClient = Depends(get_client)):
    view = dashboard_view(request, client)
    return render(request, "dashboard.html", {"view": view, "period": view.period})


@app.get("/register", response_class=HTMLResponse)
def register_page(request: Request, client: ApiClient = Depends(get_client)):
    view = RegisterService(client).load(_int_param(request, "year"))
    return render(request, "register.html", {"view": view})


@app.get("/api/dashboard")
def api_dashboard(request: Request, client: ApiClient = Depends(get_client)):
    view = dashboard_view(request, client)
    return {
        "period": period_payload(view.period),
        "graph": view.graph_type,
        "net_worth": view.net_worth,
        "summary": view.summary.model_dump(),
        "breakdown": view.breakdown.model_dump(),
        "bars": [b.model_dump() for b in view.bars],
        "labels": view.labels,
        "transactions": [t.model_dump(by_alias=True) for t in view.transactions],
        "error": view.error,
    }


@app.get("/api/register")
def api_register(request: Request, client: ApiClient = Depends(get_client)):
    view = RegisterService(client).load(_int_param(request, "year"))
    return {
        "years": view.years,
        "selected_year": view.selected_year,
        "months": [m.model_dump() for m in view.months],
        "year_summaries": [y.model_dump() for y in view.year_summaries],
        "year_totals": asdict(view.year_totals),
        "global_totals": asdict(view.global_totals),
        "wealth": [w.model_dump() for w in view.wealth],
        "wealth_delta": view.wealth_delta,
        "wealth_chart": line_chart_payload(view.wealth_chart),
        "error": view.error,
    }


@app.get("/api/portfolio")
def api_portfolio(request: Request, client: ApiClient = Depends(get_client)):
    view = portfolio_view(request, client)
    return {
        "range": view.range_key,
        "tab": view.tab,
        "total_invested": view.total_invested,
        "total_current_value": view.total_current_value,
        "total_pnl": view.total_pnl,
        "last_valuation": view.last_valuation,
        "allocation_total": view.allocation_total,
        "allocation": [asdict(s) for s in view.allocation],
        "points": [asdict(p) for p in view.points],
        "series": [s.model_dump() for s in view.series],
        "labels": view.labels,
        "chart": line_chart_payload(view.chart),
        "error": view.error,
    }


@app.get("/api/investments/{asset_id}")
def api_investment(
    asset_id: int, request: Request, client: ApiClient = Depends(get_client)
):
    try:
        view = InvestmentDetailService(client).load(
            asset_id, request.query_params.get("range") or "all"
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if view.not_found:
        raise HTTPException(status_code=404, detail="Asset not found")
    return {
        "asset_id": asset_id,
        "title": view.title,
        "range": view.range_key,
        "invested": view.invested,
        "current_value": view.current_value,
        "pnl": view.pnl,
        "pnl_pct": view.pnl_pct,
        "last": view.last_label,
        "series": [p.model_dump() for p in view.visible_series],
        "deltas": asdict(view.deltas) if view.deltas else None,
        "chart": line_chart_payload(view.chart),
        "valuations": view.valuations,
        "operations": view.operations,
        "error": view.error,
    }


@app.get("/api/ranges")
def api_ranges(request: Request):
    period = period_from_request(request)
    payload = period_payload(period)
    payload["params"] = period.api_params()
    payload["iso_week"] = to_iso_week_value(period.start)
    return payload


def pointer_from_request(request: Request) -> PointerSource:
    source = request.query_params.get("source", "mouse")
    if source == "touch":
        return TouchEvent(_float_param(request, "x"), _float_param(request, "y"))
    if source == "mouse":
        return MouseEvent(
            _float_param(request, "x"),
            _float_param(request, "y"),
            _float_param(request, "rect_left"),
            _float_param(request, "rect_top"),
        )
    raise HTTPException(status_code=400, detail=f"Unknown pointer source: {source}")


@app.get("/api/charts/hover")
def api_chart_hover(request: Request):
    params = request.query_params
    pointer = pointer_from_request(request)
    chart = params.get("chart", "line")
    if chart == "line":
        hover = resolve_line_hover(
            pointer,
            layout_width=_float_param(request, "layout_width"),
            container_height=_float_param(request, "height", 300),
            n=_int_param(request, "n") or 0,
            canvas=WEALTH_CANVAS if params.get("canvas") == "wealth" else PORTFOLIO_CANVAS,
            size=DUAL_LINE_TOOLTIP if params.get("variant") == "dual" else SINGLE_LINE_TOOLTIP,
        )
        return {"index": hover.index, "tooltip": asdict(hover.tooltip)}
    if chart == "bar":
        try:
            values = [float(v) for v in params.getlist("values")]
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid values") from exc
        geometry = build_bar_chart(
            [BarPoint(display=v, real=v) for v in values],
            [str(i) for i in range(len(values))],
            _float_param(request, "layout_width"),
            _float_param(request, "height", 260),
        )
        hover = resolve_bar_hover(pointer, geometry)
        return {
            "index": hover.index,
            "tooltip": asdict(hover.tooltip) if hover.tooltip else None,
        }
    raise HTTPException(status_code=400, detail=f"Unknown chart type: {chart}")


@app.get("/components/period-chart", response_class=HTMLResponse)
def component_period_chart(request: Request, client: ApiClient = Depends(get_client)):
    view = dashboard_view(request, client)
    return render(request, "components/period_chart.html", {"view": view})


@app.get("/components/category-donut", response_class=HTMLResponse)
def component_donut(request: Request, client: ApiClient = Depends(get_client)):
    view = dashboard_view(request, client)
    return render(request, "components/donut.html", {"view": view, "donut": view.donut})


@app.get("/components/wealth-chart", response_class=HTMLResponse)
def component_wealth_chart(request: Request, client: ApiClient = Depends(get_client)):
    view = RegisterService(client).load(_int_param(request, "year"))
    active = _int_param(request, "active")
    return render(
        request,
        "components/wealth_chart.html",
        {"view": view, "chart": view.wealth_chart, "active": active},
    )


@app.get("/components/portfolio-chart", response_class=HTMLResponse)
def component_portfolio_chart(request: Request, client: ApiClient = Depends(get_client)):
    view = portfolio_view(request, client)
    active = _int_param(request, "active")
    crosshair = None
    if view.chart is not None and active is not None and 0 <= active < len(view.points):
        crosshair = crosshair_path(view.chart.scale.x_at(active), view.chart.canvas)
    return render(
        request,
        "components/portfolio_chart.html",
        {"view": view, "chart": view.chart, "active": active, "crosshair": crosshair},
    )


@app.get("/components/investment-chart", response_class=HTMLResponse)
def component_investment_chart(request: Request, client: ApiClient = Depends(get_client)):
    asset_id = _int_param(request, "asset_id")
    if asset_id is None:
        return render(request, "components/investment_chart.html", {"view": None})
    try:
        view = InvestmentDetailService(client).load(
            asset_id, request.query_params.get("range") or "all"
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return render(
        request,
        "components/investment_chart.html",
        {"view": None if view.not_found else view, "chart": view.chart},
    )


def _load_record(client: ApiClient, transaction_id: int) -> TransactionRecord:
    try:
        raw = client.transaction(transaction_id)
    except ApiError as exc:
        if exc.status == 404:
            raise HTTPException(status_code=404, detail="Transaction not found") from exc
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    try:
        return TransactionRecord.model_validate(raw)
    except ValidationError as exc:
        raise HTTPException(status_code=502, detail="Unexpected transaction payload") from exc


@app.get("/components/tx-editor", response_class=HTMLResponse)
def component_tx_editor(
    request: Request,
    client: ApiClient = Depends(get_client),
    editor: TransactionEditor = Depends(get_editor),
):
    transaction_id = _int_param(request, "transaction_id")
    if transaction_id is not None:
        editor.open_edit(_load_record(client, transaction_id))
    else:
        try:
            prefill = TransactionPrefill.model_validate(
                {
                    "wallet_id": _int_param(request, "wallet_id"),
                    "type": request.query_params.get("type") or None,
                    "date": request.query_params.get("date") or local_today().isoformat(),
                    "asset_id": _int_param(request, "asset_id"),
                }
            )
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        editor.open_create(prefill)
    return render(request, "components/tx_editor.html", {"editor": editor, "errors": []})


def transaction_payload_from_form(form) -> TransactionIn:
    amount = (form.get("amount") or "").strip().replace(",", ".")
    return TransactionIn.model_validate(
        {
            "type": form.get("type"),
            "amount": amount or None,
            "date": form.get("date"),
            "wallet_id": form.get("wallet_id"),
            "to_wallet_id": form.get("to_wallet_id") or None,
            "category_id": form.get("category_id") or None,
            "subcategory_id": form.get("subcategory_id") or None,
            "currency": (form.get("currency") or "EUR").strip().upper(),
            "note": form.get("note") or None,
            "is_recurring": form.get("is_recurring") == "on",
            "exclude_from_stats": form.get("exclude_from_stats") == "on",
        }
    )


def scope_from_form(form) -> Optional[RecurringScope]:
    raw = form.get("scope")
    if not raw:
        return None
    try:
        return RecurringScope(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid scope: {raw}") from exc


def validation_messages(exc: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    ]


def _changed_response(request: Request) -> Response:
    headers = {"HX-Trigger": "transactions-changed"}
    if request.headers.get("HX-Request"):
        return Response(status_code=204, headers=headers)
    return RedirectResponse(
        url=request.app.url_path_for("dashboard"), status_code=303, headers=headers
    )


async def _submit_editor(
    request: Request, editor: TransactionEditor, record: Optional[TransactionRecord]
) -> Response:
    form = await request.form()
    if not validate_csrf_token(form.get("csrf_token", "")):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
    scope = scope_from_form(form)
    if record is not None:
        editor.open_edit(record)
    else:
        editor.open_create()
    try:
        payload = transaction_payload_from_form(form)
    except ValidationError as exc:
        return render(
            request,
            "components/tx_editor.html",
            {"editor": editor, "errors": validation_messages(exc), "form": form},
            status_code=400,
        )
    try:
        editor.submit(payload, scope)
    except ApiError as exc:
        logger.warning(f"transaction_save_failed: status={exc.status} error={exc}")
        return render(
            request,
            "components/tx_editor.html",
            {"editor": editor, "errors": ["No se pudo guardar la transacción."], "form": form},
            status_code=502,
        )
    return _changed_response(request)


@app.post("/transactions")
async def create_transaction(
    request: Request, editor: TransactionEditor = Depends(get_editor)
):
    return await _submit_editor(request, editor, None)


@app.post("/transactions/{transaction_id}/edit")
async def edit_transaction_submit(
    transaction_id: int,
    request: Request,
    client: ApiClient = Depends(get_client),
    editor: TransactionEditor = Depends(get_editor),
):
    record = _load_record(client, transaction_id)
    return await _submit_editor(request, editor, record)


@app.post("/transactions/{transaction_id}/delete")
async def delete_transaction(
    transaction_id: int,
    request: Request,
    editor: TransactionEditor = Depends(get_editor),
):
    form = await request.form()
    if not validate_csrf_token(form.get("csrf_token", "")):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
    scope = scope_from_form(form)
    try:
        editor.delete(transaction_id, scope)
    except ApiError as exc:
        if exc.status == 404:
            raise HTTPException(status_code=404, detail="Transaction not found") from exc
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return Response(status_code=204, headers={"HX-Trigger": "transactions-changed"})


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
