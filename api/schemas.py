from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterModel(BaseModel):
    email: str
    password: str
    name: str


class LoginModel(BaseModel):
    email: str
    password: str


class DashboardCreateModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str = ""
    source_id: str = Field(alias="sourceId")
    tab_name: Optional[str] = Field(default=None, alias="tabName")


class DashboardUpdateModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    source_id: Optional[str] = Field(default=None, alias="sourceId")
    tab_name: Optional[str] = Field(default=None, alias="tabName")


class ViewSettingsModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    view_mode: Optional[Literal["sample", "aggregate", "all"]] = Field(default=None, alias="viewMode")
    sample_size: Optional[int] = Field(default=None, alias="sampleSize")
    aggregate_by: Optional[str] = Field(default=None, alias="aggregateBy")
    aggregate_function: Optional[Literal["sum", "avg", "count", "max", "min"]] = Field(
        default=None, alias="aggregateFunction"
    )
    show_trendline: Optional[bool] = Field(default=None, alias="showTrendline")
    enable_zoom: Optional[bool] = Field(default=None, alias="enableZoom")


class ChartSpecModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    title: Optional[str] = None
    type: str = "bar"
    x_key: Optional[str] = Field(default=None, alias="xKey")
    y_key: Optional[str] = Field(default=None, alias="yKey")
    z_key: Optional[str] = Field(default=None, alias="zKey")
    settings: Optional[ViewSettingsModel] = None


class RenderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_id: str = Field(alias="sourceId")
    sheet_name: Optional[str] = Field(default=None, alias="sheetName")
    range: Optional[str] = None
    charts: Optional[List[ChartSpecModel]] = None
    settings: Optional[ViewSettingsModel] = None


class TableRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sheet_name: Optional[str] = Field(default=None, alias="sheetName")
    range: Optional[str] = None
    filter: str = ""
    sort_column: Optional[str] = Field(default=None, alias="sortColumn")
    sort_order: Optional[Literal["asc", "desc"]] = Field(default=None, alias="sortOrder")
    page: int = 1
    per_page: int = Field(default=25, alias="perPage")
