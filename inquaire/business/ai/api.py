from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inquaire.business.ai.schemas import (
    AnalysisResult,
    AnalyzeInquiryRequest,
    ClassifyRequest,
    ClassifyResponse,
    GenerateReplyRequest,
    GenerateReplyResponse,
)
from inquaire.business.ai.service import ai_service
from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db


router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/analyze", response_model=AnalysisResult)
def analyze_message(
    payload: AnalyzeInquiryRequest,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_authenticated_user),
) -> AnalysisResult:
    return ai_service.analyze(db, payload.message, payload.industry_type, payload.context)


@router.post("/generate-reply", response_model=GenerateReplyResponse)
def generate_reply(
    payload: GenerateReplyRequest,
    _: AuthUser = Depends(get_authenticated_user),
) -> GenerateReplyResponse:
    return GenerateReplyResponse(reply=ai_service.generate_reply(payload.message, payload.industry_type, payload.context))


@router.post("/classify", response_model=ClassifyResponse)
def classify_message(
    payload: ClassifyRequest,
    _: AuthUser = Depends(get_authenticated_user),
) -> ClassifyResponse:
    return ClassifyResponse(classification=ai_service.classify(payload.message))
