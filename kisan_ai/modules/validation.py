# in kisan_ai/modules/validation.py

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import ValidationError

from ..models import CamelModel

logger = logging.getLogger(__name__)


class DiagnoseDiseaseRequest(CamelModel):
    image_data: str
    user_id: Optional[str] = None


class QueryRequest(CamelModel):
    query: str
    user_id: Optional[str] = None


class MarketInsightRequest(QueryRequest):
    pass


class MarketAnalysisRequest(QueryRequest):
    pass


class SchemeRecommendationRequest(QueryRequest):
    pass


class VoiceQueryRequest(QueryRequest):
    pass


class WeatherRequest(CamelModel):
    location: str


class CreateUserRequest(CamelModel):
    id: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    location: Optional[str] = None
    language: Optional[str] = None


T = TypeVar("T", bound=CamelModel)


@dataclass
class ParseResult(Generic[T]):
    """Either a parsed request (`value`) or a field -> messages map (`errors`)."""

    value: Optional[T] = None
    errors: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.value is not None and not self.errors


def _field_errors(exc: ValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        name = ".".join(str(part) for part in err.get("loc", ())) or "body"
        errors.setdefault(name, []).append(err.get("msg", "Invalid value"))
    return errors


def parse_payload(model_cls: Type[T], payload: Any) -> ParseResult[T]:
    """
    Validate a decoded JSON body or query map against a request struct.

    Anything that is not a mapping is treated as an empty object, so each
    required field shows up in the error map.
    """
    if not isinstance(payload, dict):
        payload = {}
    try:
        return ParseResult(value=model_cls.model_validate(payload))
    except ValidationError as e:
        errors = _field_errors(e)
        logger.info(f"Rejected {model_cls.__name__} payload: {errors}")
        return ParseResult(errors=errors)
