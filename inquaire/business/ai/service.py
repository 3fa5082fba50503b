from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from inquaire.business.ai.client import OpenAiClient, OpenAiError
from inquaire.business.ai.schemas import AnalysisResult
from inquaire.business.industry_configs.models import IndustryConfig
from inquaire.core.config import get_settings
from inquaire.metrics import observe_ai_analysis

logger = logging.getLogger("inquaire.ai")

FALLBACK_TYPE = "General inquiry"
FALLBACK_REPLY = "Thank you for reaching out. A member of our team will review your message and reply shortly."
FALLBACK_CLASSIFICATION = "general"
FALLBACK_CONFIDENCE = 0.5
SUMMARY_LENGTH = 100

MEDICAL_INDUSTRIES = {"HOSPITAL", "DENTAL", "DERMATOLOGY", "PLASTIC_SURGERY"}

_ANALYSIS_FIELDS = """- sentiment: one of positive, neutral, negative
- urgency: one of high, medium, low
- suggested_reply: a friendly, professional reply in one or two sentences
- confidence: a number between 0 and 1

Respond with a single valid JSON object."""


def _role_label(industry_type: str) -> str:
    if industry_type in MEDICAL_INDUSTRIES:
        return "clinic"
    if industry_type == "REAL_ESTATE":
        return "real estate agency"
    return "business"


def default_system_prompt(industry_type: str) -> str:
    intro = (
        f"You are a customer consultation assistant for a {_role_label(industry_type)}.\n"
        "Analyze the customer inquiry and return the structured information as JSON.\n\n"
        "Extract the following fields:\n"
    )
    if industry_type in MEDICAL_INDUSTRIES:
        details = (
            "- type: inquiry type (reservation, pricing, treatment, general)\n"
            "- summary: a one or two sentence summary\n"
            "- extracted_info: {desired_date (YYYY-MM-DD), desired_time, treatment_name, concern, "
            "customer_name, contact, age, additional_info}\n"
        )
    elif industry_type == "REAL_ESTATE":
        details = (
            "- type: inquiry type (listing, pricing, visit reservation, general)\n"
            "- summary: a one or two sentence summary\n"
            "- extracted_info: {property_type, location, budget, desired_date, rooms, "
            "customer_name, contact, additional_requirements}\n"
        )
    else:
        details = (
            "- type: inquiry type\n"
            "- summary: a one or two sentence summary\n"
            "- extracted_info: the key details as an object\n"
        )
    return intro + details + _ANALYSIS_FIELDS


def fallback_analysis(message: str) -> AnalysisResult:
    return AnalysisResult(
        type=FALLBACK_TYPE,
        summary=message[:SUMMARY_LENGTH],
        extracted_info={},
        sentiment="neutral",
        urgency="medium",
        suggested_reply=FALLBACK_REPLY,
        confidence=FALLBACK_CONFIDENCE,
    )


@dataclass(slots=True)
class AiService:
    client: OpenAiClient | None = None

    @property
    def model(self) -> str:
        return get_settings().openai_model

    def system_prompt(self, session: Session, industry_type: str) -> str:
        config = session.scalar(select(IndustryConfig).where(IndustryConfig.industry == industry_type))
        if config is not None and config.system_prompt:
            return config.system_prompt
        return default_system_prompt(industry_type)

    def analyze(self, session: Session, message: str, industry_type: str, context: str | None = None) -> AnalysisResult:
        started = time.perf_counter()
        client = self._get_client()
        if client is None:
            logger.warning("ai.analysis_unconfigured")
            observe_ai_analysis("fallback", time.perf_counter() - started)
            return fallback_analysis(message)

        user_message = f"{context}\n\n{message}" if context else message
        try:
            raw = client.chat(
                self.model,
                [
                    {"role": "system", "content": self.system_prompt(session, industry_type)},
                    {"role": "user", "content": user_message},
                ],
                temperature=0.3,
                json_mode=True,
            )
            analysis = json.loads(raw)
            if not isinstance(analysis, dict):
                raise ValueError("analysis is not a JSON object")
            result = AnalysisResult(
                type=analysis.get("type") or FALLBACK_TYPE,
                summary=analysis.get("summary") or message[:SUMMARY_LENGTH],
                extracted_info=analysis.get("extracted_info") or {},
                sentiment=analysis.get("sentiment") or "neutral",
                urgency=analysis.get("urgency") or "medium",
                suggested_reply=analysis.get("suggested_reply") or "",
                confidence=analysis.get("confidence") or 0.8,
            )
        except (OpenAiError, ValueError) as exc:
            duration = time.perf_counter() - started
            logger.error("ai.analysis_failed", extra={"error": str(exc), "duration_ms": round(duration * 1000, 2)})
            observe_ai_analysis("error", duration)
            return fallback_analysis(message)

        duration = time.perf_counter() - started
        logger.info("ai.analysis_completed", extra={"duration_ms": round(duration * 1000, 2), "status": "success"})
        observe_ai_analysis("success", duration)
        return result

    def generate_reply(self, message: str, industry_type: str, context: str | None = None) -> str:
        client = self._get_client()
        if client is None:
            return FALLBACK_REPLY
        prompt = (
            f"You are a customer consultant for a {_role_label(industry_type)}.\n"
            "Answer the customer's inquiry kindly and professionally in two or three sentences, "
            "asking for more details when needed."
        )
        user_message = f"{context}\n\nCustomer inquiry: {message}" if context else f"Customer inquiry: {message}"
        try:
            return client.chat(
                self.model,
                [{"role": "system", "content": prompt}, {"role": "user", "content": user_message}],
                temperature=0.7,
                max_tokens=200,
            )
        except OpenAiError as exc:
            logger.error("ai.reply_generation_failed", extra={"error": str(exc)})
            return FALLBACK_REPLY

    def classify(self, message: str) -> str:
        client = self._get_client()
        if client is None:
            return FALLBACK_CLASSIFICATION
        try:
            content = client.chat(
                self.model,
                [
                    {
                        "role": "system",
                        "content": "Classify the inquiry as one of: reservation, pricing, general, complaint, urgent. "
                        "Answer with a single word.",
                    },
                    {"role": "user", "content": message},
                ],
                temperature=0.3,
                max_tokens=10,
            )
        except OpenAiError as exc:
            logger.error("ai.classification_failed", extra={"error": str(exc)})
            return FALLBACK_CLASSIFICATION
        return content.strip() or FALLBACK_CLASSIFICATION

    def _get_client(self) -> OpenAiClient | None:
        if self.client is not None:
            return self.client
        settings = get_settings()
        if not settings.openai_api_key:
            return None
        self.client = OpenAiClient(
            settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.openai_timeout_seconds,
        )
        return self.client


ai_service = AiService()
