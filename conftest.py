import random
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from kisan_ai.main import ServiceContext, create_app
from kisan_ai.modules import AIGatewayService, MarketService, MemStorage, SchemesService, WeatherService

DIAGNOSIS_RESPONSE = """```json
{
  "disease": "Early Blight",
  "confidence": "85",
  "severity": "Medium",
  "remedies": ["Remove infected leaves", "Spray copper fungicide", "Rotate crops"]
}
```"""

ANALYSIS_RESPONSE = """Here is the analysis you asked for:
{
  "analysis": "Tomato demand is rising ahead of the festival season.",
  "predictions": [{"crop": "Tomato", "predicted_price": "₹28/kg", "trend": "up"}],
  "recommendations": ["Sell in small lots", "Watch the Bangalore mandi"]
}
Good luck!"""


class FakeLLM:
    """Stands in for CloudLLMService; returns canned text and records calls."""

    def __init__(self, text_response="Prices look steady this week.", vision_response=DIAGNOSIS_RESPONSE, error=None):
        self.text_response = text_response
        self.vision_response = vision_response
        self.error = error
        self.calls = []

    async def complete_text(self, system_prompt, user_prompt):
        self.calls.append(("text", system_prompt, user_prompt))
        if self.error:
            raise self.error
        return self.text_response

    async def complete_vision(self, prompt, image_base64, mime_type="image/jpeg"):
        self.calls.append(("vision", prompt, image_base64, mime_type))
        if self.error:
            raise self.error
        return self.vision_response


def ticking_clock(start=datetime(2024, 7, 15, 9, 0, 0), step=timedelta(seconds=1)):
    """Clock that moves forward by `step` on every call."""
    state = {"now": start - step}

    def now():
        state["now"] += step
        return state["now"]
    return now


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def context(fake_llm):
    return ServiceContext(
        storage=MemStorage(clock=ticking_clock()),
        market=MarketService(),
        schemes=SchemesService(),
        weather=WeatherService(api_key="", rng=random.Random(7), clock=lambda: datetime(2024, 7, 15)),
        ai=AIGatewayService(fake_llm),
    )


@pytest.fixture
def client(context):
    return TestClient(create_app(context))
