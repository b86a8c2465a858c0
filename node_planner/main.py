#!/usr/bin/env python3
"""NS node planner backend (FastAPI).

- Recommendations: OpenRouter (OpenAI-compatible API) with web search
- Reply parsing: best-effort JSON recovery (response_normalizer)
- PDF report: ReportLab
"""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

# Support both `uvicorn node_planner.main:app` (repo root) and
# `uvicorn main:app` (package directory) execution contexts.
if __package__ is None or __package__ == "":
    sys.path.append(str(Path(__file__).resolve().parent.parent))

from fastapi import Body, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from node_planner import pdf_service
from node_planner.config import AppConfig
from node_planner.llm_service import LlmServiceError, RecommendationsClient
from node_planner.pdf_service import PdfRenderError, init_fonts, render_recommendations_pdf
from node_planner.questionnaire import NS_NODE_SERVICES, QUESTIONS, QuestionnaireAnswers, format_location
from node_planner.response_normalizer import (
    NormalizedResult,
    RawTextResult,
    StructuredResult,
    normalize,
    split_document,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s - %(message)s",
)

logger = logging.getLogger("node_planner")

config = AppConfig.from_env()
recommendations_client = RecommendationsClient(config)
if not recommendations_client.configured:
    logger.warning(
        "LLM client is not configured. /recommendations will fail. "
        "Check OPENROUTER_API_KEY and OPENROUTER_FREE_MODEL/OPENROUTER_PAID_MODEL in .env"
    )

init_fonts()

app = FastAPI(title="NS Node Planner Backend")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:8501").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RecommendationsRequest(BaseModel):
    answers: QuestionnaireAnswers


def _resolve_request_id(request: Optional[Request]) -> str:
    if request is not None:
        for header in ("x-request-id", "x-correlation-id"):
            value = (request.headers.get(header) or "").strip()
            if value:
                return value
    return str(uuid4())


def _recommendations_payload(result: NormalizedResult) -> dict[str, Any]:
    """Shape a normalized reply the way /generate-pdf accepts it back."""
    if isinstance(result, RawTextResult):
        return {"recommendations": {"text": result.raw_text, "raw": True}}
    items, summary = split_document(result.document)
    payload: dict[str, Any] = {"recommendations": items}
    payload.update(summary)
    return payload


# ------------------------------------------------------------------------------
# API endpoints: Health Check / catalogs
# ------------------------------------------------------------------------------
@app.get("/health")
def health():
    return {
        "status": "ok",
        "llm_configured": recommendations_client.configured,
        "model": config.model_name or None,
        "use_paid_model": config.use_paid_model,
        "web_search": config.web_search,
        "unicode_font": pdf_service.UNICODE_FONT_AVAILABLE,
        "pdf_font_reg": pdf_service.PDF_FONT_REG,
        "pdf_font_bold": pdf_service.PDF_FONT_BOLD,
    }


@app.get("/questions")
def get_questions():
    return {"questions": QUESTIONS}


@app.get("/services")
def get_services():
    return {"services": NS_NODE_SERVICES}


# ------------------------------------------------------------------------------
# API endpoints: Recommendations
# ------------------------------------------------------------------------------
@app.post("/recommendations")
async def post_recommendations(payload: RecommendationsRequest, request: Request):
    request_id = _resolve_request_id(request)
    logger.info(
        "Recommendations requested request_id=%s location=%s",
        request_id,
        format_location(payload.answers),
    )
    try:
        reply = await recommendations_client.generate(payload.answers, request_id=request_id)
    except LlmServiceError as e:
        logger.error("Error generating recommendations request_id=%s: %s", request_id, e)
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to generate recommendations", "details": str(e)},
        )

    result = normalize(reply.text)
    logger.info("LLM reply normalized request_id=%s kind=%s", request_id, result.kind)

    body = _recommendations_payload(result)
    body["usage"] = reply.usage
    return body


# ------------------------------------------------------------------------------
# API endpoints: PDF
# ------------------------------------------------------------------------------
@app.post("/generate-pdf")
async def generate_pdf(
    body: Any = Body(None),
    location: Optional[str] = Query(None),
):
    """Generate the recommendations PDF from any JSON body."""
    result = normalize(body)
    if isinstance(result, StructuredResult):
        items, _summary = split_document(result.document)
        logger.info("PDF requested with structured document items=%d", len(items))
    else:
        logger.info("PDF requested with raw text chars=%d", len(result.raw_text))

    meta = {"location": location} if location else {}
    try:
        pdf_bytes = await asyncio.to_thread(render_recommendations_pdf, result, meta)
    except PdfRenderError as e:
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to generate PDF", "kind": e.kind, "details": str(e)},
        )

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{pdf_service.PDF_FILENAME}"'},
    )
