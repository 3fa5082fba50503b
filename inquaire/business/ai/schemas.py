from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from inquaire.business.businesses.schemas import IndustryType


class AnalyzeInquiryRequest(BaseModel):
    message: str = Field(min_length=1)
    industry_type: IndustryType = "OTHER"
    context: str | None = None


class AnalysisResult(BaseModel):
    type: str
    summary: str
    extracted_info: dict[str, Any] = Field(default_factory=dict)
    sentiment: str = "neutral"
    urgency: str = "medium"
    suggested_reply: str = ""
    confidence: float = Field(default=0.8, ge=0, le=1)


class GenerateReplyRequest(BaseModel):
    message: str = Field(min_length=1)
    industry_type: IndustryType = "OTHER"
    context: str | None = None


class GenerateReplyResponse(BaseModel):
    reply: str


class ClassifyRequest(BaseModel):
    message: str = Field(min_length=1)


class ClassifyResponse(BaseModel):
    classification: str
