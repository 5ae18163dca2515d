"""
Analytico Backend - Pydantic Models
All request/response schemas
"""

from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

ChartType = Literal[
    "bar", "line", "pie", "area", "radar", "scatter",
    "composed", "kpi", "gauge", "heatmap", "geo",
]


class ChartIntent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: ChartType
    x_axis: Optional[str] = Field(default=None, alias="xAxis")
    y_axis: Optional[str] = Field(default=None, alias="yAxis")
    y_axis_secondary: Optional[str] = Field(default=None, alias="yAxisSecondary")


class ColumnDescriptor(BaseModel):
    name: str
    included: bool = True


class TableDescriptor(BaseModel):
    name: str
    columns: list[ColumnDescriptor]
    rows: list[dict[str, Any]] = []


class RegisterTablesRequest(BaseModel):
    tables: list[TableDescriptor]


class RegisteredColumn(BaseModel):
    name: str
    original_name: str
    included: bool


class RegisteredTable(BaseModel):
    name: str
    original_name: str
    row_count: int
    columns: list[RegisteredColumn]


class RegisterTablesResponse(BaseModel):
    registered: list[str]
    skipped: list[str]
    tables: list[RegisteredTable]


class ColumnSchema(BaseModel):
    name: str
    type: str


class TableSchemaResponse(BaseModel):
    name: str
    columns: list[ColumnSchema]


class ChartQueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sql: str
    chart_config: Optional[ChartIntent] = Field(default=None, alias="chartConfig")
    max_retries: Optional[int] = None


class AskRequest(BaseModel):
    user_prompt: str


class ChartResponse(BaseModel):
    data: list[dict[str, Any]]
    sql: str
    chart_config: Optional[ChartIntent] = None
    title: Optional[str] = None
    explanation: Optional[str] = None
    row_count: int
    raw_row_count: int = 0
    attempts: int = 0
    fallback_stage: str = "none"
    sql_error: Optional[str] = None


class GeneratedChart(BaseModel):
    """Shape of the JSON the LLM returns for a question"""
    model_config = ConfigDict(populate_by_name=True)

    sql: str
    chart_config: Optional[ChartIntent] = Field(default=None, alias="chartConfig")
    title: Optional[str] = None
    explanation: Optional[str] = None
