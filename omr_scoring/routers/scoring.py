"""
Scoring API endpoints.

Scores subject-grouped answers, or decodes and scores a whole scanner
export in one call, against a booklet-aware answer key.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request, Response, status
from pydantic import BaseModel, Field

from omr_scoring.config import get_settings
from omr_scoring.middleware.rate_limit import (
    limiter,
    presets_limit,
    score_batch_limit,
    score_limit,
    upload_cost,
)
from omr_scoring.models.answer_key import AnswerKey
from omr_scoring.models.record import Booklet, Letter
from omr_scoring.models.scoring import EXAM_PRESETS, ScoringConfig, get_exam_preset
from omr_scoring.models.template import Template
from omr_scoring.routers.decode import decode_response, run_decode
from omr_scoring.services.scoring_engine import score_answers, score_batch

router = APIRouter(prefix="/api", tags=["scoring"])


class ScoreRequest(BaseModel):
    """Request model for scoring one student's answers."""
    subject_answers: Dict[str, List[Optional[Letter]]] = Field(
        ..., description="Subject code -> answers in sheet order (null = blank)"
    )
    booklet: Optional[Booklet] = Field(None, description="Booklet the student took")
    answer_key: AnswerKey
    exam_type: Optional[str] = Field(None, description="Scoring preset, e.g. 'LGS' or 'TYT'")
    scoring_config: Optional[ScoringConfig] = Field(
        None, description="Explicit scoring parameters; overrides exam_type"
    )


class ScoreBatchRequest(BaseModel):
    """Request model for decoding and scoring a scanner export."""
    text: str = Field(..., description="Scanner export, one student per line")
    template: Template
    answer_key: AnswerKey
    exam_type: Optional[str] = None
    scoring_config: Optional[ScoringConfig] = None
    skip_header_lines: int = Field(default=0, ge=0)


def resolve_scoring_config(
    scoring_config: Optional[ScoringConfig],
    exam_type: Optional[str],
    answer_key: Optional[AnswerKey] = None,
) -> ScoringConfig:
    """
    Pick the explicit config, else the named preset, else the key's or default preset.

    Raises:
        HTTPException: 400 if the preset name is unknown
    """
    if scoring_config is not None:
        return scoring_config

    name = exam_type or (answer_key.exam_type if answer_key else None) or get_settings().default_exam_type
    try:
        return get_exam_preset(name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/exam-presets", status_code=status.HTTP_200_OK)
@limiter.limit(presets_limit)  # type: ignore[untyped-decorator]
async def list_exam_presets(request: Request) -> Dict[str, Any]:
    """
    List built-in exam scoring presets.

    Returns:
        200: Preset name -> scoring configuration
    """
    return {name: config.model_dump(mode="json") for name, config in EXAM_PRESETS.items()}


@router.post("/score", status_code=status.HTTP_200_OK)
@limiter.limit(score_limit)  # type: ignore[untyped-decorator]
async def score_student(request: Request, body: ScoreRequest) -> Response:
    """
    Score one student's subject-grouped answers.

    Returns:
        200: Per-subject counts and nets, weighted raw and scaled score
        400: Unknown exam type
    """
    config = resolve_scoring_config(body.scoring_config, body.exam_type, body.answer_key)
    result = score_answers(body.subject_answers, body.answer_key, body.booklet, config)

    return Response(
        content=json.dumps(result.model_dump(mode="json")),
        media_type="application/json",
        status_code=status.HTTP_200_OK,
    )


@router.post("/score/batch", status_code=status.HTTP_200_OK)
@limiter.limit(score_batch_limit, cost=upload_cost)  # type: ignore[untyped-decorator]
async def score_scanner_text(request: Request, body: ScoreBatchRequest) -> Response:
    """
    Decode a scanner export and score every record that was not rejected.

    Returns:
        200: Decode result plus ``scores`` in line order
        400: Unknown exam type or invalid options
    """
    config = resolve_scoring_config(body.scoring_config, body.exam_type, body.answer_key)

    try:
        result = await asyncio.to_thread(run_decode, body.text, body.template, body.skip_header_lines)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    scores = await asyncio.to_thread(score_batch, result, body.answer_key, config)
    return decode_response(
        result,
        exam_type=config.name,
        scores=[s.model_dump(mode="json") for s in scores],
    )
