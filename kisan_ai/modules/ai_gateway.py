# in kisan_ai/modules/ai_gateway.py

import json
import logging
import re
from typing import Any, Dict, List

from ..errors import (
    DiagnosisFailed,
    JSONExtractionError,
    MarketAnalysisFailed,
    MarketInsightFailed,
    VoiceQueryFailed,
)
from ..models import DiseaseDiagnosis, MarketAnalysis, MarketPrediction
from .prompts import (
    PROMPT_DIAGNOSE_DISEASE,
    PROMPT_MARKET_ANALYSIS,
    PROMPT_MARKET_INSIGHT,
    PROMPT_VOICE_QUERY,
)

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"```json\s*|```\s*")
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def extract_json(text: str) -> Any:
    """
    Parse JSON out of a model response.

    Markdown code fences are dropped first. If the rest is not valid JSON,
    the span from the first "{" to the last "}" is tried instead.
    """
    clean_text = _CODE_FENCE_RE.sub("", text or "").strip()
    try:
        return json.loads(clean_text)
    except json.JSONDecodeError as e:
        match = _JSON_OBJECT_RE.search(clean_text)
        if not match:
            raise JSONExtractionError(f"No JSON object in model response: {e}") from e
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError as inner:
            raise JSONExtractionError(f"Malformed JSON object in model response: {inner}") from inner


def _coerce_confidence(value: Any) -> int:
    """Model confidence arrives as 85, "85", "85%" or 85.4; clamp to 0-100."""
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, int(round(number))))


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(item) for item in value if item is not None]


def _require_object(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise JSONExtractionError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class AIGatewayService:
    """
    The four generative-model use cases: disease diagnosis, market insight,
    market analysis and voice queries.

    `llm` is anything with async `complete_text(system, user)` and
    `complete_vision(prompt, image_base64, mime_type)` methods, normally a
    CloudLLMService. Every failure comes out as the capability's
    UpstreamServiceError subclass.
    """

    def __init__(self, llm):
        self.llm = llm

    async def diagnose_crop_disease(self, image_base64: str, mime_type: str = "image/jpeg") -> DiseaseDiagnosis:
        try:
            text = await self.llm.complete_vision(PROMPT_DIAGNOSE_DISEASE, image_base64, mime_type)
            data = _require_object(extract_json(text))
            if not data.get("disease"):
                raise JSONExtractionError("Model response has no disease name")
            severity = data.get("severity")
            return DiseaseDiagnosis(
                disease=str(data["disease"]),
                confidence=_coerce_confidence(data.get("confidence")),
                remedies=_string_list(data.get("remedies")),
                severity=str(severity) if severity else None,
            )
        except Exception as e:
            logger.error(f"Error diagnosing crop disease: {e}", exc_info=True)
            raise DiagnosisFailed() from e

    async def get_market_insight(self, query: str) -> str:
        try:
            return await self.llm.complete_text(PROMPT_MARKET_INSIGHT, query)
        except Exception as e:
            logger.error(f"Error getting market insight: {e}", exc_info=True)
            raise MarketInsightFailed() from e

    async def generate_market_analysis(self, query: str) -> MarketAnalysis:
        try:
            text = await self.llm.complete_text(PROMPT_MARKET_ANALYSIS, query)
            data = _require_object(extract_json(text))
            predictions = [
                MarketPrediction(
                    crop=str(p.get("crop", "")),
                    predicted_price=str(p.get("predicted_price", "")),
                    trend=str(p.get("trend", "stable")),
                )
                for p in data.get("predictions") or []
                if isinstance(p, dict)
            ]
            return MarketAnalysis(
                analysis=str(data.get("analysis", "")),
                predictions=predictions,
                recommendations=_string_list(data.get("recommendations")),
            )
        except Exception as e:
            logger.error(f"Error generating market analysis: {e}", exc_info=True)
            raise MarketAnalysisFailed() from e

    async def process_voice_query(self, query: str) -> str:
        try:
            return await self.llm.complete_text(PROMPT_VOICE_QUERY, query)
        except Exception as e:
            logger.error(f"Error processing voice query: {e}", exc_info=True)
            raise VoiceQueryFailed() from e
