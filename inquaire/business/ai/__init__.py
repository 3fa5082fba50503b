from inquaire.business.ai.client import OpenAiClient, OpenAiError
from inquaire.business.ai.schemas import AnalysisResult, AnalyzeInquiryRequest

__all__ = [
    "OpenAiClient",
    "OpenAiError",
    "AnalysisResult",
    "AnalyzeInquiryRequest",
]
