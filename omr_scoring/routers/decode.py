"""
Decode API endpoints.

Turns optical reader exports into per-student records, either from a JSON
body or from an uploaded scanner file.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, Response, UploadFile, status
from pydantic import BaseModel, Field, ValidationError

from omr_scoring.config import get_settings
from omr_scoring.middleware.rate_limit import decode_limit, limiter, presets_limit, upload_cost
from omr_scoring.models.record import DecodeResult
from omr_scoring.models.template import PRESET_TEMPLATES, Template
from omr_scoring.services.file_validator import validate_text_upload
from omr_scoring.services.record_assembler import decode_text, to_legacy_row

router = APIRouter(prefix="/api", tags=["decode"])
logger = logging.getLogger(__name__)


class DecodeRequest(BaseModel):
    """Request model for decoding scanner text."""
    text: str = Field(..., description="Scanner export, one student per line")
    template: Template = Field(..., description="Column layout of the export")
    skip_header_lines: int = Field(default=0, ge=0, description="Leading header lines to ignore")
    include_legacy_rows: bool = Field(default=False, description="Also return flat legacy rows")


def decode_response(result: DecodeResult, include_legacy_rows: bool = False, **extra: Any) -> Response:
    """Serialize a decode result with summary headers for the logging middleware."""
    payload: Dict[str, Any] = result.model_dump(mode="json")
    if include_legacy_rows:
        payload["legacy_rows"] = [to_legacy_row(r).model_dump(mode="json") for r in result.records]
    payload.update(extra)

    response = Response(
        content=json.dumps(payload, ensure_ascii=False),
        media_type="application/json",
        status_code=status.HTTP_200_OK,
    )
    response.headers["X-Record-Count"] = str(result.summary.total_lines)
    response.headers["X-Rejected-Count"] = str(result.summary.rejected_count)
    response.headers["X-Average-Confidence"] = str(result.summary.average_confidence)
    return response


def run_decode(text: str, template: Template, skip_header_lines: int = 0) -> DecodeResult:
    """Decode with the configured character set and quality thresholds."""
    settings = get_settings()
    return decode_text(
        text,
        template,
        config=settings.decoder_config(),
        thresholds=settings.quality_thresholds(),
        skip_header_lines=skip_header_lines,
    )


@router.get("/templates", status_code=status.HTTP_200_OK)
@limiter.limit(presets_limit)  # type: ignore[untyped-decorator]
async def list_templates(request: Request) -> Dict[str, Any]:
    """
    List the built-in optical reader templates.

    Returns:
        200: Template name -> template definition
    """
    return {name: t.model_dump(mode="json") for name, t in PRESET_TEMPLATES.items()}


@router.post("/decode", status_code=status.HTTP_200_OK)
@limiter.limit(decode_limit, cost=upload_cost)  # type: ignore[untyped-decorator]
async def decode_scanner_text(request: Request, body: DecodeRequest) -> Response:
    """
    Decode scanner text into student records.

    Args:
        body: Scanner text, template and options

    Returns:
        200: Records in line order plus batch summary
        400: Invalid options
        422: Malformed template
    """
    try:
        result = await asyncio.to_thread(run_decode, body.text, body.template, body.skip_header_lines)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return decode_response(result, body.include_legacy_rows)


@router.post("/decode/upload", status_code=status.HTTP_200_OK)
@limiter.limit(decode_limit, cost=upload_cost)  # type: ignore[untyped-decorator]
async def decode_scanner_file(
    request: Request,
    file: UploadFile = File(..., description="Optical reader export (.txt/.dat)"),
    template: Optional[str] = Form(None, description="Template as JSON"),
    template_name: Optional[str] = Form(None, description="Built-in template name, used when no template JSON is sent"),
    skip_header_lines: int = Form(0, description="Leading header lines to ignore"),
) -> Response:
    """
    Decode an uploaded scanner file.

    Exactly one of ``template`` (JSON) or ``template_name`` must be given.

    Returns:
        200: Records in line order plus batch summary
        400: Bad file, unknown template name or invalid options
        413: File too large
        422: Malformed template JSON
    """
    parsed_template = resolve_template(template, template_name)

    settings = get_settings()
    text, file_hash, filename = await validate_text_upload(file, settings.max_upload_bytes)
    logger.info("Decoding upload %s (sha256 %s)", filename, file_hash[:12])

    try:
        result = await asyncio.to_thread(run_decode, text, parsed_template, skip_header_lines)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return decode_response(result, filename=filename, file_hash=file_hash)


def resolve_template(template_json: Optional[str], template_name: Optional[str]) -> Template:
    """
    Parse a template sent as JSON or look up a built-in one.

    Raises:
        HTTPException: 400 for missing/unknown templates, 422 for invalid JSON
    """
    if template_json:
        try:
            return Template.model_validate_json(template_json)
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=json.loads(e.json()),
            )

    if not template_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either template or template_name is required"
        )

    preset = PRESET_TEMPLATES.get(template_name.strip().upper())
    if preset is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown template '{template_name}'. Available: {sorted(PRESET_TEMPLATES)}"
        )
    return preset
