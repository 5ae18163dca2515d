"""
Analytico Backend V6 - Self-Healing Chart Queries
Local tables, guarded SQL, automatic null-safety retries and chart-ready results
"""

import io
import json
import os
from contextlib import asynccontextmanager
from pathlib import Path
from time import perf_counter
from typing import Optional, TextIO

import pandas as pd
from dotenv import load_dotenv
from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from openai import OpenAI
from pydantic import ValidationError

# Import models
from models import (
    RegisterTablesRequest, RegisterTablesResponse, RegisteredTable,
    RegisteredColumn, TableSchemaResponse, ColumnSchema, ChartQueryRequest,
    AskRequest, ChartResponse, GeneratedChart, TableDescriptor,
)

# Import engine
from storage import Engine

# Import analytics core
from analytics import (
    ColumnSpec,
    TableSpec,
    LocalQueryExecutor,
    RegistrationError,
    SelfHealingExhausted,
    UnsafeQueryError,
    ensure_unique_identifiers,
    register_tables,
    run_chart_query,
    tables_from_frames,
)

load_dotenv()

DUCKDB_PATH = os.getenv("DUCKDB_PATH", ":memory:")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
SELF_HEAL_MAX_RETRIES = int(os.getenv("SELF_HEAL_MAX_RETRIES", "2"))
RESULT_ROW_CAP = int(os.getenv("RESULT_ROW_CAP", "50"))
MAX_QUERY_ROWS = int(os.getenv("MAX_QUERY_ROWS", "1000"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:3001,http://127.0.0.1:3001",
    ).split(",")
    if origin.strip()
]

# Client initialized lazily so the app imports without an API key
_client: Optional[OpenAI] = None


def get_openai_client() -> OpenAI:
    global _client
    if _client is None:
        _client = OpenAI(api_key=os.getenv("OPENAI_API_KEY"))
    return _client


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = Engine(DUCKDB_PATH).open()
    app.state.engine = engine
    try:
        yield
    finally:
        engine.close()


app = FastAPI(
    title="Analytico API V6",
    description="Self-healing SQL execution and chart-ready result shaping",
    version="6.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Helper Functions
# ============================================================================

def get_engine(request: Request) -> Engine:
    return request.app.state.engine


def table_spec_from_descriptor(table: TableDescriptor, name: str) -> TableSpec:
    """Sanitize column names and re-key row data under them"""
    raw_names = [col.name for col in table.columns]
    column_names = ensure_unique_identifiers(raw_names)
    columns = [
        ColumnSpec(name=clean, included=col.included, original_name=col.name)
        for clean, col in zip(column_names, table.columns)
    ]
    rows = [
        {clean: row.get(raw) for clean, raw in zip(column_names, raw_names)}
        for row in table.rows
    ]
    return TableSpec(name=name, columns=columns, rows=rows)


def summarize_tables(tables: list[TableSpec], original_names: list[str], registered: list[str]) -> RegisterTablesResponse:
    return RegisterTablesResponse(
        registered=registered,
        skipped=[t.name for t in tables if t.name not in registered],
        tables=[
            RegisteredTable(
                name=t.name,
                original_name=original,
                row_count=len(t.rows),
                columns=[
                    RegisteredColumn(name=c.name, original_name=c.original_name or c.name, included=c.included)
                    for c in t.columns
                ],
            )
            for t, original in zip(tables, original_names)
        ],
    )


def read_csv_fast(source: str | Path | TextIO) -> pd.DataFrame:
    """Read CSV using pyarrow when available, with safe fallback."""
    try:
        return pd.read_csv(source, engine="pyarrow")
    except Exception:
        if hasattr(source, "seek"):
            source.seek(0)
        return pd.read_csv(source, low_memory=False)


def strip_code_fences(content: str) -> str:
    cleaned = content.strip()
    if cleaned.startswith("```"):
        lines = cleaned.splitlines()[1:]
        if lines and lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        cleaned = "\n".join(lines).strip()
    return cleaned


def print_pipeline_timing(endpoint: str, durations: dict[str, float], attempts: int) -> None:
    """Print formatted execution timings for chart query phases."""
    print(f"\n=== {endpoint} Pipeline Timing ===")
    print(f"SQL Guardrails: {durations.get('guardrails', 0.0):.2f}s")
    print(f"Query Execution ({attempts} attempt{'s' if attempts != 1 else ''}): {durations.get('query', 0.0):.2f}s")
    print(f"Result Shaping: {durations.get('shaping', 0.0):.2f}s")
    if "llm" in durations:
        print(f"LLM SQL Generation: {durations['llm']:.2f}s")
    print(f"Total Pipeline: {durations.get('total', 0.0):.2f}s")
    print("=" * (len(endpoint) + 20))


# ============================================================================
# System Prompt for LLM
# ============================================================================

SYSTEM_PROMPT = """You are a SQL analytics assistant for DuckDB. Given a user question and the table schema, return JSON with:

1. sql: One read-only DuckDB SELECT statement answering the question
2. chartConfig: {"type", "xAxis", "yAxis", "yAxisSecondary"?}
   type is one of "bar", "line", "pie", "area", "radar", "scatter", "composed", "kpi", "gauge", "heatmap", "geo"
3. title: Chart title
4. explanation: A 2-sentence business insight describing what the chart shows

Rules:
- Use ONLY the tables and columns listed in the schema, with their exact names
- xAxis and yAxis MUST be column aliases produced by the SELECT
- TEMPORAL columns: prefer line or area charts ordered by time
- Categories: prefer bar charts ordered by the metric descending

Return ONLY raw JSON, no markdown."""


# ============================================================================
# Endpoints
# ============================================================================

@app.get("/")
async def root():
    return {"status": "ok", "service": "Analytico API V6"}


@app.get("/tables")
async def list_tables(request: Request):
    return {"tables": get_engine(request).list_tables()}


@app.get("/tables/{table_name}/schema", response_model=TableSchemaResponse)
async def table_schema(table_name: str, request: Request):
    columns = get_engine(request).table_schema(table_name)
    if not columns:
        raise HTTPException(status_code=404, detail=f"Table '{table_name}' not found.")
    return TableSchemaResponse(name=table_name, columns=[ColumnSchema(**c) for c in columns])


@app.post("/tables", response_model=RegisterTablesResponse)
async def register_tables_endpoint(payload: RegisterTablesRequest, request: Request):
    original_names = [t.name for t in payload.tables]
    table_names = ensure_unique_identifiers(original_names)
    tables = [table_spec_from_descriptor(t, name) for t, name in zip(payload.tables, table_names)]

    try:
        registered = register_tables(get_engine(request), tables)
    except RegistrationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return summarize_tables(tables, original_names, registered)


@app.post("/upload", response_model=RegisterTablesResponse)
async def upload_csv(request: Request, file: UploadFile = File(...)):
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Please upload a CSV file.")

    try:
        content = await file.read()
        df = read_csv_fast(io.BytesIO(content))
    except pd.errors.EmptyDataError:
        raise HTTPException(status_code=400, detail="Empty CSV.")
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Could not parse CSV: {e}")

    sheet_name = Path(file.filename).stem
    tables = tables_from_frames({sheet_name: df})
    try:
        registered = register_tables(get_engine(request), tables)
    except RegistrationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return summarize_tables(tables, [sheet_name], registered)


@app.post("/query", response_model=ChartResponse)
async def query_endpoint(payload: ChartQueryRequest, request: Request):
    executor = LocalQueryExecutor(get_engine(request))
    max_retries = payload.max_retries if payload.max_retries is not None else SELF_HEAL_MAX_RETRIES

    try:
        result = run_chart_query(
            executor,
            payload.sql,
            payload.chart_config,
            max_retries=max_retries,
            row_cap=RESULT_ROW_CAP,
            max_rows=MAX_QUERY_ROWS,
        )
    except UnsafeQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SelfHealingExhausted as e:
        print(f"Query failed after {len(e.attempts)} attempts: {e.last_error}")
        raise HTTPException(status_code=422, detail=str(e))

    print_pipeline_timing("/query", result.durations, result.attempts)
    return ChartResponse(
        data=result.rows,
        sql=result.sql,
        chart_config=payload.chart_config,
        row_count=result.post_limit_count,
        raw_row_count=result.raw_row_count,
        attempts=result.attempts,
        fallback_stage=result.fallback_stage,
    )


@app.post("/ask", response_model=ChartResponse)
async def ask_endpoint(payload: AskRequest, request: Request):
    if not os.getenv("OPENAI_API_KEY"):
        raise HTTPException(status_code=500, detail="OpenAI API key not configured.")

    engine = get_engine(request)
    schema = engine.describe()
    if not schema:
        raise HTTPException(status_code=400, detail="No tables registered. Please upload data first.")

    user_msg = f"""Question: {payload.user_prompt}

Schema:
{schema}"""

    llm_start = perf_counter()
    try:
        resp = get_openai_client().chat.completions.create(
            model=OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_msg},
            ],
            temperature=0.2,
            response_format={"type": "json_object"},
        )
    except Exception as e:
        raise HTTPException(status_code=502, detail=f"SQL generation failed: {e}")

    llm_seconds = perf_counter() - llm_start
    content = resp.choices[0].message.content or ""
    try:
        plan = GeneratedChart.model_validate(json.loads(strip_code_fences(content)))
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        print(f"Unusable LLM response: {e}")
        return ChartResponse(
            data=[],
            sql="",
            title="AI Response",
            explanation=content,
            row_count=0,
            sql_error=f"Could not read generated query: {e}",
        )

    try:
        result = run_chart_query(
            LocalQueryExecutor(engine),
            plan.sql,
            plan.chart_config,
            max_retries=SELF_HEAL_MAX_RETRIES,
            row_cap=RESULT_ROW_CAP,
            max_rows=MAX_QUERY_ROWS,
        )
    except (UnsafeQueryError, SelfHealingExhausted) as e:
        # Surfaced to the user with a "regenerate query" action
        return ChartResponse(
            data=[],
            sql=plan.sql,
            chart_config=plan.chart_config,
            title=plan.title,
            explanation=plan.explanation,
            row_count=0,
            attempts=len(getattr(e, "attempts", [])),
            sql_error=str(e),
        )

    result.durations["llm"] = llm_seconds
    print_pipeline_timing("/ask", result.durations, result.attempts)
    return ChartResponse(
        data=result.rows,
        sql=result.sql,
        chart_config=plan.chart_config,
        title=plan.title,
        explanation=plan.explanation,
        row_count=result.post_limit_count,
        raw_row_count=result.raw_row_count,
        attempts=result.attempts,
        fallback_stage=result.fallback_stage,
    )
