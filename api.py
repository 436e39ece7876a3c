"""
Bill Auditor — FastAPI Server
=============================

RESTful API for analyzing OCR-scanned medical bills.

Endpoints:
    POST /analyze           Analyze raw OCR bill text
    POST /analyze/file      Upload a text file for analysis
    GET  /health            Health check / readiness check

Run:
    uvicorn api:app --reload              # Dev (http://localhost:8000)
    uvicorn api:app --host 0.0.0.0        # Production

Docs:
    http://localhost:8000/docs             # Swagger UI (auto-generated)
    http://localhost:8000/redoc            # ReDoc (alternative)
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, UploadFile
from pydantic import BaseModel, Field

from bill_auditor import __version__
from bill_auditor.config import Settings
from bill_auditor.models import BillAnalysis, BillFlag, FairnessScore, LineItem
from bill_auditor.pipeline import BillAnalysisPipeline

load_dotenv()


# ─── Application Lifespan (pre-warm pipeline) ───────────────────────

_pipeline: BillAnalysisPipeline | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the pipeline (settings + reviewer client) on startup."""
    global _pipeline  # noqa: PLW0603
    _pipeline = BillAnalysisPipeline(Settings.from_env())
    yield
    _pipeline = None


# ─── FastAPI App ─────────────────────────────────────────────────────

app = FastAPI(
    title="Bill Auditor API",
    description=(
        "Line-item extraction and anomaly scoring for OCR-scanned medical bills. "
        "Resilient parsing of pipe-delimited and multi-line layouts, rule-based "
        "flags, optional LLM combination review, and a deterministic fairness score."
    ),
    version=__version__,
    lifespan=lifespan,
)


# ─── Request / Response Schemas ─────────────────────────────────────


class AnalyzeRequest(BaseModel):
    """Request body for the /analyze endpoint."""

    raw_ocr_text: str = Field(
        ...,
        min_length=10,
        description="The raw OCR text of the medical bill.",
        json_schema_extra={
            "example": (
                "Charges\n"
                "Description\nDate\nQty\nAmount\n"
                "Blood Test | 2025-01-15 | 1 | 120.00 | $120.00\n"
                "Blood Test | 2025-01-15 | 1 | 120.00 | $120.00\n"
                "Subtotal $240.00"
            )
        },
    )
    bill_id: Optional[str] = Field(
        default=None,
        max_length=128,
        description="Caller's bill identifier; a UUID is generated if omitted.",
    )


class AnalyzeResponse(BaseModel):
    """Structured analysis returned by the API."""

    bill_id: str
    original_hash: str = Field(description="SHA-256 hash of the raw OCR input")
    combination_review: str
    item_count: int
    flag_count: int
    line_items: list[LineItem]
    flags: list[BillFlag]
    fairness: FairnessScore

    model_config = {"json_schema_extra": {"example": {
        "bill_id": "bill-123",
        "original_hash": "a1b2c3d4...",
        "combination_review": "disabled",
        "item_count": 2,
        "flag_count": 2,
        "line_items": [
            {"description": "Blood Test", "date": "2025-01-15", "amount": "120.00"},
            {"description": "Blood Test", "date": "2025-01-15", "amount": "120.00"},
        ],
        "flags": [
            {
                "item_index": 0,
                "type": "DUPLICATE_CHARGE",
                "explanation": "Charge 'Blood Test' with amount $120.00 ...",
            }
        ],
        "fairness": {
            "score": 40,
            "breakdown": {
                "initial_score": 100,
                "deductions": {"DUPLICATE_CHARGE": {"count": 2, "points_deducted": 60}},
                "final_score": 40,
            },
        },
    }}}


class HealthResponse(BaseModel):
    status: str
    version: str
    combination_review: str


# ─── Helpers ─────────────────────────────────────────────────────────


def _get_pipeline() -> BillAnalysisPipeline:
    if _pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialised")
    return _pipeline


def _build_response(analysis: BillAnalysis) -> AnalyzeResponse:
    """Convert the internal BillAnalysis to the API response schema."""
    return AnalyzeResponse(
        bill_id=analysis.bill_id,
        original_hash=analysis.original_hash,
        combination_review=analysis.combination_review,
        item_count=len(analysis.line_items),
        flag_count=len(analysis.flags),
        line_items=analysis.line_items,
        flags=analysis.flags,
        fairness=analysis.fairness,
    )


# ─── Endpoints ───────────────────────────────────────────────────────


@app.post(
    "/analyze",
    summary="Analyze a bill from raw OCR text",
    tags=["Analysis"],
    responses={503: {"description": "Pipeline not yet initialised"}},
)
def analyze_bill(request: AnalyzeRequest) -> AnalyzeResponse:
    """Run the full analysis pipeline on raw OCR bill text.

    Returns a structured analysis with:
    - **line_items**: charges recovered from the "Charges" section
    - **flags**: duplicate, vague, temporal and combination findings
    - **fairness**: 0-100 score with per-category deductions
    - **original_hash**: SHA-256 of the input for audit trail
    """
    pipeline = _get_pipeline()
    analysis = pipeline.run(request.raw_ocr_text, bill_id=request.bill_id)
    return _build_response(analysis)


@app.post(
    "/analyze/file",
    summary="Analyze a bill from an uploaded text file",
    tags=["Analysis"],
    responses={
        413: {"description": "File too large (max 1 MB)"},
        400: {"description": "File is not valid UTF-8 text"},
        422: {"description": "File content too short to be a bill"},
        503: {"description": "Pipeline not yet initialised"},
    },
)
async def analyze_bill_file(file: UploadFile, bill_id: Optional[str] = None) -> AnalyzeResponse:
    """Upload a `.txt` file containing raw OCR bill text for analysis.

    Accepts any text file up to 1 MB.
    """
    if file.size and file.size > 1_048_576:
        raise HTTPException(status_code=413, detail="File too large (max 1 MB)")

    content = await file.read()
    try:
        raw_text = content.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be UTF-8 encoded text")

    if len(raw_text.strip()) < 10:
        raise HTTPException(status_code=422, detail="File content too short to be a bill")

    pipeline = _get_pipeline()
    analysis = await asyncio.to_thread(pipeline.run, raw_text, bill_id)
    return _build_response(analysis)


@app.get(
    "/health",
    summary="Health check",
    tags=["System"],
    responses={503: {"description": "Pipeline not yet initialised"}},
)
def health_check() -> HealthResponse:
    """Returns service status and configuration info."""
    pipeline = _get_pipeline()
    return HealthResponse(
        status="healthy",
        version=__version__,
        combination_review=pipeline.combination_review,
    )
