from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import (
    ChartSpecModel,
    DashboardCreateModel,
    DashboardUpdateModel,
    LoginModel,
    RegisterModel,
    RenderRequest,
    TableRequest,
)
from core.accounts import AccountStore, Principal
from core.charts import compute_charts
from core.config import CORS_ORIGINS, setup_logging
from core.dashboards import DashboardStore
from core.errors import (
    DuplicateUser,
    FetchError,
    InvalidCredentials,
    InvalidKeyBinding,
    InvalidRange,
    NotFound,
    PermissionDenied,
    RecordNotFound,
    Unauthenticated,
    ValidationError,
)
from core.registry import ChartRegistry, ChartSpec
from core.settings import ViewSettings, normalize_settings
from core.sources import SheetSource, check_connection, default_source
from core.table import table_page


setup_logging()
app = FastAPI(title="Sheet Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_accounts = AccountStore()
_dashboards = DashboardStore()
_source = default_source()


def get_accounts() -> AccountStore:
    return _accounts


def get_dashboards() -> DashboardStore:
    return _dashboards


def get_source() -> SheetSource:
    return _source


def current_principal(
    authorization: Optional[str] = Header(default=None),
    accounts: AccountStore = Depends(get_accounts),
) -> Principal:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")
    try:
        return accounts.authenticate(token.strip())
    except Unauthenticated as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


# most specific first
_STATUS = (
    (NotFound, 404),
    (RecordNotFound, 404),
    (PermissionDenied, 403),
    (InvalidRange, 400),
    (FetchError, 502),
    (Unauthenticated, 401),
    (InvalidCredentials, 400),
    (DuplicateUser, 400),
    (ValidationError, 400),
    (InvalidKeyBinding, 400),
)


def _error(exc: Exception, what: str) -> JSONResponse:
    for exc_type, status in _STATUS:
        if isinstance(exc, exc_type):
            logger.info("%s failed: %s", what, exc)
            return JSONResponse(status_code=status, content={"error": str(exc), "type": type(exc).__name__})
    logger.exception("%s failed", what)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/health")
def health():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "message": "Sheet Dashboard API is running",
    }


# ---------- auth ----------


@app.post("/api/auth/register", status_code=201)
def register(body: RegisterModel, accounts: AccountStore = Depends(get_accounts)):
    try:
        principal, token = accounts.register(body.email, body.password, body.name)
        return _json({"message": "User created successfully", "token": token, "user": principal.to_dict()}, status_code=201)
    except Exception as exc:
        return _error(exc, "register")


@app.post("/api/auth/login")
def login(body: LoginModel, accounts: AccountStore = Depends(get_accounts)):
    try:
        principal, token = accounts.login(body.email, body.password)
        return _json({"message": "Login successful", "token": token, "user": principal.to_dict()})
    except Exception as exc:
        return _error(exc, "login")


@app.get("/api/auth/me")
def me(principal: Principal = Depends(current_principal)):
    return _json({"user": principal.to_dict()})


@app.post("/api/auth/logout")
def logout(
    authorization: Optional[str] = Header(default=None),
    principal: Principal = Depends(current_principal),
    accounts: AccountStore = Depends(get_accounts),
):
    accounts.logout((authorization or "").partition(" ")[2].strip())
    logger.info("logged out %s", principal.email)
    return _json({"message": "Logged out"})


# ---------- dashboards ----------


@app.get("/api/dashboards")
def list_dashboards(
    principal: Principal = Depends(current_principal),
    dashboards: DashboardStore = Depends(get_dashboards),
):
    return _json([d.to_dict() for d in dashboards.list(principal.id)])


@app.post("/api/dashboards", status_code=201)
def create_dashboard(
    body: DashboardCreateModel,
    principal: Principal = Depends(current_principal),
    dashboards: DashboardStore = Depends(get_dashboards),
):
    try:
        record = dashboards.create(
            principal.id,
            title=body.title,
            source_id=body.source_id,
            description=body.description,
            tab_name=body.tab_name,
        )
        return _json(record.to_dict(), status_code=201)
    except Exception as exc:
        return _error(exc, "create_dashboard")


@app.get("/api/dashboards/{dashboard_id}")
def get_dashboard(
    dashboard_id: str,
    principal: Principal = Depends(current_principal),
    dashboards: DashboardStore = Depends(get_dashboards),
):
    try:
        return _json(dashboards.get(principal.id, dashboard_id).to_dict())
    except Exception as exc:
        return _error(exc, "get_dashboard")


@app.put("/api/dashboards/{dashboard_id}")
def update_dashboard(
    dashboard_id: str,
    body: DashboardUpdateModel,
    principal: Principal = Depends(current_principal),
    dashboards: DashboardStore = Depends(get_dashboards),
):
    try:
        changes = body.model_dump(exclude_none=True)
        return _json(dashboards.update(principal.id, dashboard_id, **changes).to_dict())
    except Exception as exc:
        return _error(exc, "update_dashboard")


@app.delete("/api/dashboards/{dashboard_id}")
def delete_dashboard(
    dashboard_id: str,
    principal: Principal = Depends(current_principal),
    dashboards: DashboardStore = Depends(get_dashboards),
):
    try:
        dashboards.delete(principal.id, dashboard_id)
        return _json({"message": "Dashboard deleted successfully"})
    except Exception as exc:
        return _error(exc, "delete_dashboard")


# ---------- data ----------


@app.get("/api/data/test-connection/{source_id}")
def test_connection(source_id: str, source: SheetSource = Depends(get_source)):
    try:
        if check_connection(source, source_id):
            return _json({"success": True, "message": "Connection successful!"})
        return _json({"success": False, "message": "Connection failed"}, status_code=400)
    except Exception as exc:
        return _error(exc, "test_connection")


@app.get("/api/data/sheet-info/{source_id}")
def sheet_info(source_id: str, source: SheetSource = Depends(get_source)):
    try:
        return _json(source.list_tabs(source_id).to_dict())
    except Exception as exc:
        return _error(exc, "sheet_info")


@app.get("/api/data/sheet/{source_id}")
def sheet_data(
    source_id: str,
    sheet_name: Optional[str] = Query(default=None, alias="sheetName"),
    range_: Optional[str] = Query(default=None, alias="range"),
    source: SheetSource = Depends(get_source),
):
    try:
        return _json(source.fetch(source_id, sheet_name or None, range_ or None).to_dict())
    except Exception as exc:
        return _error(exc, "sheet_data")


@app.post("/api/data/table/{source_id}")
def table(source_id: str, body: TableRequest, source: SheetSource = Depends(get_source)):
    try:
        dataset = source.fetch(source_id, body.sheet_name, body.range)
        return _json(
            table_page(
                dataset,
                filter_text=body.filter,
                sort_column=body.sort_column,
                sort_order=body.sort_order,
                page=body.page,
                per_page=body.per_page,
            )
        )
    except Exception as exc:
        return _error(exc, "table")


# ---------- charts ----------


def _settings_dict(model) -> Dict[str, object]:
    return model.model_dump(by_alias=True, exclude_none=True) if model is not None else {}


def _specs_from_models(models: List[ChartSpecModel]) -> List[ChartSpec]:
    specs: List[ChartSpec] = []
    for position, model in enumerate(models, start=1):
        specs.append(
            ChartSpec(
                id=model.id or f"chart-{position}",
                title=model.title or f"Chart {position}",
                type=model.type,  # type: ignore[arg-type]
                x_key=model.x_key or "",
                y_key=model.y_key or "",
                z_key=model.z_key,
            )
        )
    return specs


@app.post("/api/charts/render")
def render_charts(body: RenderRequest, source: SheetSource = Depends(get_source)):
    try:
        dataset = source.fetch(body.source_id, body.sheet_name, body.range)
        if dataset.is_empty:
            return _json({"empty": True, "charts": []})

        if body.charts is None:
            registry = ChartRegistry(dataset.headers)
            specs = registry.seed_defaults()
            models: List[ChartSpecModel] = []
        else:
            models = body.charts
            specs = _specs_from_models(models)

        shared = _settings_dict(body.settings)
        settings_by_id: Dict[str, ViewSettings] = {}
        for position, spec in enumerate(specs):
            own = _settings_dict(models[position].settings) if position < len(models) else {}
            settings_by_id[spec.id] = normalize_settings({**shared, **own}, dataset=dataset)

        return _json({"dataset": dataset.summary(), "charts": compute_charts(dataset, specs, settings_by_id)})
    except Exception as exc:
        return _error(exc, "render_charts")
