# in kisan_ai/main.py

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import config

logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

from . import __version__
from .errors import ConflictError
from .models import Activity, DiseaseDiagnosis, MarketAnalysis, MarketPrice, Scheme, User, WeatherData
from .modules import (
    AIGatewayService,
    CloudLLMService,
    MarketService,
    MemStorage,
    SchemesService,
    WeatherService,
    parse_payload,
)
from .modules.validation import (
    CreateUserRequest,
    DiagnoseDiseaseRequest,
    MarketAnalysisRequest,
    MarketInsightRequest,
    SchemeRecommendationRequest,
    VoiceQueryRequest,
    WeatherRequest,
)

IMAGE_DATA_URI_RE = re.compile(r"^data:image/([a-z]+);base64,")


@dataclass
class ServiceContext:
    """Everything the routes need, built once at startup and passed to create_app."""

    storage: MemStorage
    market: MarketService
    schemes: SchemesService
    weather: WeatherService
    ai: AIGatewayService
    llm: Optional[CloudLLMService] = None

    @classmethod
    def from_config(cls) -> "ServiceContext":
        llm = CloudLLMService()
        return cls(
            storage=MemStorage(),
            market=MarketService(),
            schemes=SchemesService(),
            weather=WeatherService(),
            ai=AIGatewayService(llm),
            llm=llm,
        )


def error_response(error: Any, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error})


def strip_image_prefix(image_data: str) -> Tuple[str, str]:
    """Split a data URI into (base64 payload, mime type); bare base64 is taken as JPEG."""
    match = IMAGE_DATA_URI_RE.match(image_data)
    if not match:
        return image_data, "image/jpeg"
    return image_data[match.end():], f"image/{match.group(1)}"


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


def create_app(context: Optional[ServiceContext] = None) -> FastAPI:
    context = context or ServiceContext.from_config()

    app = FastAPI(title="Kisan AI API", version=__version__)
    app.state.context = context
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS, allow_credentials=True, allow_methods=["*"], allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def path_validation_handler(request: Request, exc: RequestValidationError):
        errors = {}
        for err in exc.errors():
            errors.setdefault(str(err["loc"][-1]), []).append(err["msg"])
        return error_response(errors, 400)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "services": {
                "llm": context.llm.get_service_status() if context.llm else None,
                "weather": context.weather.get_service_status(),
                "storage": context.storage.get_service_status(),
            },
        }

    # --- Disease diagnosis ---

    @app.post("/api/diagnose-disease", response_model=DiseaseDiagnosis)
    async def diagnose_disease(request: Request):
        try:
            parsed = parse_payload(DiagnoseDiseaseRequest, await _read_json(request))
            if not parsed.ok:
                return error_response(parsed.errors, 400)
            payload = parsed.value

            image_base64, mime_type = strip_image_prefix(payload.image_data)
            diagnosis = await context.ai.diagnose_crop_disease(image_base64, mime_type)

            if payload.user_id:
                context.storage.create_disease_scan(
                    user_id=payload.user_id,
                    image_data=image_base64,
                    diagnosis=diagnosis.disease,
                    confidence=diagnosis.confidence,
                    remedies=diagnosis.remedies,
                )
                context.storage.create_activity(
                    user_id=payload.user_id,
                    type="scan",
                    title="Disease scan completed",
                    description=f"{diagnosis.disease} detected in crop",
                    icon="fas fa-camera",
                )

            return diagnosis
        except Exception as e:
            logger.error(f"Disease diagnosis error: {e}", exc_info=True)
            return error_response("Failed to diagnose disease", 500)

    # --- Market ---

    @app.get("/api/market-prices", response_model=List[MarketPrice])
    async def market_prices():
        try:
            return context.market.list_prices()
        except Exception as e:
            logger.error(f"Market prices error: {e}", exc_info=True)
            return error_response("Failed to fetch market prices", 500)

    @app.get("/api/market-prices/{crop}", response_model=MarketPrice)
    async def market_price_for_crop(crop: str):
        try:
            price = context.market.price_for(crop)
            if not price:
                return error_response("Crop not found", 404)
            return price
        except Exception as e:
            logger.error(f"Market price error: {e}", exc_info=True)
            return error_response("Failed to fetch crop price", 500)

    @app.get("/api/market-prices/{crop}/insight")
    async def market_trend_insight(crop: str):
        try:
            return {"insight": context.market.insight_for(crop)}
        except Exception as e:
            logger.error(f"Market trend insight error: {e}", exc_info=True)
            return error_response("Failed to get market insight", 500)

    @app.post("/api/market-insight")
    async def market_insight(request: Request):
        try:
            parsed = parse_payload(MarketInsightRequest, await _read_json(request))
            if not parsed.ok:
                return error_response(parsed.errors, 400)
            payload = parsed.value

            insight = await context.ai.get_market_insight(payload.query)

            if payload.user_id:
                context.storage.create_activity(
                    user_id=payload.user_id,
                    type="market",
                    title="Market analysis requested",
                    description=f"Analysis for: {payload.query}",
                    icon="fas fa-chart-line",
                )

            return {"insight": insight}
        except Exception as e:
            logger.error(f"Market insight error: {e}", exc_info=True)
            return error_response("Failed to get market insight", 500)

    @app.post("/api/market-analysis", response_model=MarketAnalysis)
    async def market_analysis(request: Request):
        try:
            parsed = parse_payload(MarketAnalysisRequest, await _read_json(request))
            if not parsed.ok:
                return error_response(parsed.errors, 400)
            payload = parsed.value

            analysis = await context.ai.generate_market_analysis(payload.query)

            if payload.user_id:
                context.storage.create_activity(
                    user_id=payload.user_id,
                    type="market",
                    title="Market analysis generated",
                    description=f"In-depth analysis for: {payload.query}",
                    icon="fas fa-chart-pie",
                )

            return analysis
        except Exception as e:
            logger.error(f"Market analysis error: {e}", exc_info=True)
            return error_response("Failed to generate market analysis", 500)

    # --- Government schemes ---

    @app.get("/api/schemes", response_model=List[Scheme])
    async def schemes(category: Optional[str] = None):
        try:
            if category:
                return context.schemes.by_category(category)
            return context.schemes.list_schemes()
        except Exception as e:
            logger.error(f"Schemes error: {e}", exc_info=True)
            return error_response("Failed to fetch schemes", 500)

    @app.get("/api/schemes/search", response_model=List[Scheme])
    async def search_schemes(q: Optional[str] = None):
        try:
            if not q:
                return error_response("Search query is required", 400)
            return context.schemes.search(q)
        except Exception as e:
            logger.error(f"Scheme search error: {e}", exc_info=True)
            return error_response("Failed to search schemes", 500)

    @app.get("/api/schemes/{scheme_id}", response_model=Scheme)
    async def scheme_by_id(scheme_id: int):
        try:
            scheme = context.schemes.scheme_by_id(scheme_id)
            if not scheme:
                return error_response("Scheme not found", 404)
            return scheme
        except Exception as e:
            logger.error(f"Scheme lookup error: {e}", exc_info=True)
            return error_response("Failed to fetch schemes", 500)

    @app.post("/api/schemes/recommend")
    async def recommend_scheme(request: Request):
        try:
            parsed = parse_payload(SchemeRecommendationRequest, await _read_json(request))
            if not parsed.ok:
                return error_response(parsed.errors, 400)
            payload = parsed.value

            recommendation = context.schemes.recommend(payload.query)

            if payload.user_id:
                context.storage.create_activity(
                    user_id=payload.user_id,
                    type="scheme",
                    title="Scheme recommendation requested",
                    description=f"Query: {payload.query}",
                    icon="fas fa-landmark",
                )

            return {"recommendation": recommendation}
        except Exception as e:
            logger.error(f"Scheme recommendation error: {e}", exc_info=True)
            return error_response("Failed to get scheme recommendation", 500)

    # --- Voice assistant ---

    @app.post("/api/voice-query")
    async def voice_query(request: Request):
        try:
            parsed = parse_payload(VoiceQueryRequest, await _read_json(request))
            if not parsed.ok:
                return error_response(parsed.errors, 400)
            payload = parsed.value

            response = await context.ai.process_voice_query(payload.query)

            if payload.user_id:
                context.storage.create_activity(
                    user_id=payload.user_id,
                    type="voice",
                    title="Voice query processed",
                    description=payload.query,
                    icon="fas fa-microphone",
                )

            return {"response": response}
        except Exception as e:
            logger.error(f"Voice query error: {e}", exc_info=True)
            return error_response("Failed to process voice query", 500)

    # --- Users and activity feed ---

    @app.get("/api/activities/{user_id}", response_model=List[Activity])
    async def activities(user_id: str):
        try:
            return context.storage.activities_for_user(user_id)
        except Exception as e:
            logger.error(f"Activities error: {e}", exc_info=True)
            return error_response("Failed to fetch activities", 500)

    @app.post("/api/users", response_model=User, status_code=201)
    async def create_user(request: Request):
        try:
            parsed = parse_payload(CreateUserRequest, await _read_json(request))
            if not parsed.ok:
                return error_response(parsed.errors, 400)
            fields = parsed.value.model_dump(exclude={"id"})
            return context.storage.create_user(user_id=parsed.value.id, **fields)
        except ConflictError as e:
            logger.warning(f"Create user rejected: {e}")
            return error_response("User already exists", 409)
        except Exception as e:
            logger.error(f"Create user error: {e}", exc_info=True)
            return error_response("Failed to create user", 500)

    @app.get("/api/users/{user_id}", response_model=User)
    async def get_user(user_id: str):
        try:
            user = context.storage.get_user(user_id)
            if not user:
                return error_response("User not found", 404)
            return user
        except Exception as e:
            logger.error(f"Get user error: {e}", exc_info=True)
            return error_response("Failed to fetch user", 500)

    # --- Weather ---

    @app.get("/api/weather", response_model=WeatherData)
    async def weather(request: Request):
        try:
            parsed = parse_payload(WeatherRequest, dict(request.query_params))
            if not parsed.ok:
                return error_response(parsed.errors, 400)
            return await context.weather.get_current_weather(parsed.value.location)
        except Exception as e:
            logger.error(f"Weather error: {e}", exc_info=True)
            return error_response("Failed to fetch weather data", 500)

    return app


app = create_app()

if __name__ == "__main__":
    config.validate()
    uvicorn.run("kisan_ai.main:app", host=config.HOST, port=config.PORT, reload=config.DEBUG)
