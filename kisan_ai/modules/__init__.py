# Kisan AI Modules
# Domain services, the AI gateway and the in-memory store used by the API routes

from .validation import parse_payload, ParseResult
from .storage import MemStorage
from .market import MarketService
from .schemes import SchemesService
from .weather import WeatherService
from .llm_cloud import CloudLLMService
from .ai_gateway import AIGatewayService, extract_json

__all__ = [
    "parse_payload",
    "ParseResult",
    "MemStorage",
    "MarketService",
    "SchemesService",
    "WeatherService",
    "CloudLLMService",
    "AIGatewayService",
    "extract_json",
]
