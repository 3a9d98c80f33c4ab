"""
Unit tests for the Kisan AI modules: validation, storage, catalogs, weather and the AI gateway.
"""

import asyncio
import random
from datetime import datetime

import httpx
import pytest

from conftest import DIAGNOSIS_RESPONSE, FakeLLM, ticking_clock
from kisan_ai.errors import (
    ConflictError,
    DiagnosisFailed,
    JSONExtractionError,
    LLMNotConfiguredError,
    MarketAnalysisFailed,
    UpstreamServiceError,
    VoiceQueryFailed,
)
from kisan_ai.modules import (
    AIGatewayService,
    CloudLLMService,
    MarketService,
    MemStorage,
    SchemesService,
    WeatherService,
    extract_json,
    parse_payload,
)
from kisan_ai.modules.validation import DiagnoseDiseaseRequest, QueryRequest, WeatherRequest
from kisan_ai.modules.weather import generate_farming_advice, most_frequent, season_for_month


# --- Validation ---

def test_parse_payload_accepts_valid_body():
    result = parse_payload(DiagnoseDiseaseRequest, {"imageData": "abc", "userId": "7", "extra": True})

    assert result.ok
    assert result.value.image_data == "abc"
    assert result.value.user_id == "7"


def test_parse_payload_reports_each_field():
    result = parse_payload(QueryRequest, {"userId": 5})

    assert not result.ok
    assert set(result.errors) == {"query", "userId"}
    assert all(isinstance(msgs, list) and msgs for msgs in result.errors.values())


def test_parse_payload_treats_non_object_as_empty():
    for payload in (None, [], "location=Pune"):
        result = parse_payload(WeatherRequest, payload)
        assert list(result.errors) == ["location"]


# --- Storage ---

def test_activity_ids_and_ordering():
    storage = MemStorage(clock=ticking_clock())
    for i in range(5):
        storage.create_activity(user_id="u1", type="market", title=f"t{i}")
    storage.create_activity(user_id="u2", type="voice", title="other")

    rows = storage.activities_for_user("u1")

    assert [a.title for a in rows] == ["t4", "t3", "t2", "t1", "t0"]
    assert all(a.created_at >= b.created_at for a, b in zip(rows, rows[1:]))
    assert storage.activities_for_user("u2")[0].id == 6


def test_equal_timestamps_keep_insertion_order():
    storage = MemStorage(clock=lambda: datetime(2024, 1, 1))
    for title in ["a", "b", "c"]:
        storage.create_activity(user_id="u1", type="scheme", title=title)

    assert [a.title for a in storage.activities_for_user("u1")] == ["a", "b", "c"]


def test_counters_are_independent_and_no_user_check():
    storage = MemStorage()
    scan = storage.create_disease_scan(user_id="ghost", image_data="abc", confidence=40)
    activity = storage.create_activity(user_id="ghost", type="scan", title="Disease scan completed")
    user = storage.create_user(first_name="Asha", email="asha@example.com")

    assert (scan.id, activity.id, user.id) == (1, 1, "1")
    assert scan.remedies == []
    assert storage.get_user("ghost") is None
    assert storage.get_user_by_email("asha@example.com") is user


def test_duplicate_user_id_is_rejected():
    storage = MemStorage()
    first = storage.create_user(user_id="farmer-1", first_name="Asha")

    with pytest.raises(ConflictError):
        storage.create_user(user_id="farmer-1", first_name="Ravi")
    assert storage.get_user("farmer-1") is first


def test_generated_user_ids_skip_taken_ids():
    storage = MemStorage()
    storage.create_user(user_id="2", first_name="Asha")

    ids = [storage.create_user().id for _ in range(2)]

    assert ids == ["1", "3"]
    assert storage.get_user("2").first_name == "Asha"
    assert storage.get_service_status()["users"] == 3


def test_scan_lookup_filters_by_user():
    storage = MemStorage()
    storage.create_disease_scan(user_id="u1", image_data="a", diagnosis="Rust")
    storage.create_disease_scan(user_id="u2", image_data="b")
    storage.create_disease_scan(user_id="u1", image_data="c", diagnosis="Blight")

    assert [s.diagnosis for s in storage.disease_scans_for_user("u1")] == ["Rust", "Blight"]
    assert storage.disease_scans_for_user("nobody") == []


# --- Market ---

def test_price_for_is_case_insensitive():
    market = MarketService()

    assert market.price_for("tomato") == market.price_for("TOMATO") == market.price_for("Tomato")
    assert market.price_for("saffron") is None


def test_insight_for_each_trend():
    market = MarketService()

    up = market.insight_for("Tomato")
    assert "5%" in up and "selling your harvest" in up

    down = market.insight_for("Onion")
    assert "3%" in down and "-3" not in down and "hold off selling" in down

    assert "steady sales" in market.insight_for("wheat")
    assert market.insight_for("saffron") == "No market data available for this crop."


# --- Schemes ---

@pytest.mark.parametrize("query,expected", [
    ("I need help with drip irrigation", "Drip Irrigation Subsidy"),
    ("need money for water pump", "PM-KISAN"),
    ("protect against crop loss", "Crop Insurance Scheme"),
    ("test my SOIL", "Soil Health Card"),
    ("tractor loan", "several relevant schemes"),
])
def test_recommendation_keyword_priority(query, expected):
    assert expected in SchemesService().recommend(query)


def test_search_and_category():
    schemes = SchemesService()

    assert [s.id for s in schemes.search("farmer")] == [1]
    assert [s.id for s in schemes.search("ADVISORY")] == [4]
    assert schemes.by_category("Insurance") == []
    assert schemes.scheme_by_id(3).status == "eligible"


# --- Weather ---

def test_season_for_month():
    assert [season_for_month(m) for m in range(12)] == [
        "winter", "winter", "winter", "shoulder", "shoulder",
        "monsoon", "monsoon", "monsoon", "monsoon", "monsoon",
        "winter", "winter",
    ]


def test_karnataka_monsoon_baseline_and_bounds():
    for seed in range(200):
        weather = WeatherService(api_key="", rng=random.Random(seed), clock=lambda: datetime(2024, 8, 1))
        baseline = weather.seasonal_baseline("Hubli, KARNATAKA")
        assert baseline["condition"] == "Rainy"
        assert baseline["humidity"] == 85

        data = asyncio.run(weather.get_current_weather("Hubli, KARNATAKA"))
        assert data.condition == "Rainy"
        assert 75 <= data.humidity <= 95
        assert 21 <= data.temperature <= 27
        assert data.rainfall >= 0
        assert data.source == "synthetic"


@pytest.mark.parametrize("month", range(1, 13))
def test_synthetic_weather_stays_in_bounds(month):
    for seed in range(25):
        weather = WeatherService(api_key="", rng=random.Random(seed), clock=lambda: datetime(2024, month, 10))
        for place in ("Karnataka", "Ludhiana, Punjab"):
            data = asyncio.run(weather.get_current_weather(place))
            assert 30 <= data.humidity <= 95
            assert data.rainfall >= 0


def test_synthetic_weather_outside_known_regions():
    weather = WeatherService(api_key="", rng=random.Random(1), clock=lambda: datetime(2024, 7, 1))

    assert weather.seasonal_baseline("Ludhiana, Punjab")["condition"] == "Partly Cloudy"
    assert asyncio.run(weather.get_current_weather("")).location == "Karnataka, India"


def test_farming_advice_clause_order():
    advice = generate_farming_advice(36, 85, 12, "Thunderstorm")

    assert advice == (
        "Very hot weather. Provide shade for crops and increase irrigation frequency. "
        "High humidity increases risk of fungal diseases. Ensure good air circulation. "
        "Heavy rainfall expected. Ensure proper drainage to prevent waterlogging. "
        "Storm warning! Secure crops and equipment. Avoid outdoor farm work."
    )
    assert generate_farming_advice(20, 60, 0, "Sunny") == (
        "Favorable temperature for most crops. Little to no rainfall. Plan irrigation accordingly."
    )
    assert generate_farming_advice(10, 35, 5, "Cloudy").startswith("Cool weather.")
    assert "light misting" in generate_farming_advice(10, 35, 5, "Cloudy")


def test_farming_advice_hot_and_moderate_rain():
    assert generate_farming_advice(32, 60, 5, "Cloudy") == (
        "Hot weather. Water crops early morning or evening to prevent heat stress. "
        "Moderate rainfall expected. Good for irrigation savings."
    )
    # boundaries are exclusive: 35 is still "hot", 2 mm and 10 mm stay in the lower band
    assert generate_farming_advice(35, 60, 10, "Clear") == (
        "Hot weather. Water crops early morning or evening to prevent heat stress. "
        "Moderate rainfall expected. Good for irrigation savings."
    )
    assert generate_farming_advice(30, 60, 2, "Clear") == (
        "Favorable temperature for most crops. Little to no rainfall. Plan irrigation accordingly."
    )


def test_most_frequent_tie_goes_to_later_value():
    assert most_frequent(["Rain", "Clouds", "Rain"]) == "Rain"
    assert most_frequent(["Clear", "Clouds"]) == "Clouds"
    assert most_frequent([]) == ""


DAY_ONE = 1719792000  # 2024-07-01T00:00:00Z

CURRENT_PAYLOAD = {
    "main": {"temp": 31.6, "humidity": 82},
    "weather": [{"main": "Thunderstorm"}],
    "name": "Mysore",
    "sys": {"country": "IN"},
}

FORECAST_PAYLOAD = {
    "city": {"timezone": 0},
    "list": [
        {"dt": DAY_ONE, "main": {"temp": 30, "humidity": 80}, "weather": [{"main": "Rain"}], "rain": {"3h": 1.0}},
        {"dt": DAY_ONE + 10800, "main": {"temp": 32, "humidity": 70}, "weather": [{"main": "Clouds"}]},
        {"dt": DAY_ONE + 21600, "main": {"temp": 34, "humidity": 60}, "weather": [{"main": "Rain"}], "rain": {"3h": 2.5}},
        {"dt": DAY_ONE + 86400, "main": {"temp": 20, "humidity": 50}, "weather": [{"main": "Clear"}]},
        {"dt": DAY_ONE + 97200, "main": {"temp": 21, "humidity": 51}, "weather": [{"main": "Clouds"}]},
    ],
}


def _provider(status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["q"] == "Mysore"
        assert request.url.params["units"] == "metric"
        if request.url.path.endswith("/weather"):
            return httpx.Response(status_code, json=CURRENT_PAYLOAD)
        return httpx.Response(status_code, json=FORECAST_PAYLOAD)
    return httpx.MockTransport(handler)


def test_live_weather_is_formatted():
    weather = WeatherService(api_key="test-key", transport=_provider())

    data = asyncio.run(weather.get_current_weather("Mysore"))

    assert data.source == "openweathermap"
    assert data.location == "Mysore, IN"
    assert data.temperature == 32
    assert data.humidity == 82
    assert data.rainfall == 3.5
    assert data.condition == "Stormy"
    assert data.advice.startswith("Hot weather.")
    assert data.advice.endswith("Avoid outdoor farm work.")

    assert [d.model_dump() for d in data.forecast] == [
        {"date": "2024-07-01", "temperature": 32, "condition": "Rainy", "rainfall": 3.5, "humidity": 70},
        {"date": "2024-07-02", "temperature": 21, "condition": "Cloudy", "rainfall": 0.0, "humidity": 51},
    ]


def test_live_weather_failure_falls_back():
    weather = WeatherService(api_key="bad-key", transport=_provider(401), rng=random.Random(3),
                             clock=lambda: datetime(2024, 1, 5))

    data = asyncio.run(weather.get_current_weather("Mysore"))

    assert data.source == "synthetic"
    assert data.forecast is None
    assert data.location == "Mysore"


def test_slow_provider_times_out_to_synthetic():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, json=CURRENT_PAYLOAD)

    weather = WeatherService(api_key="test-key", timeout=0.2, transport=httpx.MockTransport(handler),
                             rng=random.Random(3), clock=lambda: datetime(2024, 7, 5))

    data = asyncio.run(weather.get_current_weather("Mysore"))

    assert data.source == "synthetic"
    assert data.forecast is None


# --- AI gateway ---

def test_extract_json_ignores_code_fences():
    bare = '{"disease": "Rust", "confidence": 70, "remedies": ["Spray sulphur"]}'
    fenced = f"```json\n{bare}\n```"

    assert extract_json(fenced) == extract_json(bare)
    assert extract_json(f"```\n{bare}\n```") == extract_json(bare)


def test_extract_json_finds_object_in_prose():
    assert extract_json('Sure! {"analysis": "ok"} Hope this helps.') == {"analysis": "ok"}


@pytest.mark.parametrize("text", ["no json here", "{broken: json}", ""])
def test_extract_json_raises_typed_error(text):
    with pytest.raises(JSONExtractionError):
        extract_json(text)


def test_diagnosis_normalizes_model_output():
    llm = FakeLLM(vision_response='{"disease": "Leaf Curl", "confidence": "92%", "remedies": "Use neem oil"}')

    diagnosis = asyncio.run(AIGatewayService(llm).diagnose_crop_disease("abc", "image/png"))

    assert diagnosis.disease == "Leaf Curl"
    assert diagnosis.confidence == 92
    assert diagnosis.remedies == ["Use neem oil"]
    assert diagnosis.severity is None


def test_diagnosis_confidence_is_clamped():
    llm = FakeLLM(vision_response='{"disease": "Blight", "confidence": 140, "remedies": []}')

    assert asyncio.run(AIGatewayService(llm).diagnose_crop_disease("abc")).confidence == 100


def test_fenced_diagnosis_parses():
    diagnosis = asyncio.run(AIGatewayService(FakeLLM(vision_response=DIAGNOSIS_RESPONSE)).diagnose_crop_disease("abc"))

    assert diagnosis.confidence == 85
    assert diagnosis.severity == "Medium"


def test_gateway_wraps_failures_per_capability():
    cause = RuntimeError("connection reset")
    gateway = AIGatewayService(FakeLLM(error=cause))

    with pytest.raises(DiagnosisFailed) as diag:
        asyncio.run(gateway.diagnose_crop_disease("abc"))
    assert diag.value.__cause__ is cause
    assert isinstance(diag.value, UpstreamServiceError)

    with pytest.raises(VoiceQueryFailed):
        asyncio.run(gateway.process_voice_query("hello"))


def test_market_analysis_parse_failure_is_wrapped():
    gateway = AIGatewayService(FakeLLM(text_response="[1, 2, 3]"))

    with pytest.raises(MarketAnalysisFailed) as exc:
        asyncio.run(gateway.generate_market_analysis("onion"))
    assert isinstance(exc.value.__cause__, JSONExtractionError)


@pytest.mark.parametrize("response", [
    '{"confidence": 80, "remedies": ["Spray neem oil"]}',
    '{"disease": "", "confidence": 80}',
])
def test_diagnosis_without_disease_name_fails(response):
    gateway = AIGatewayService(FakeLLM(vision_response=response))

    with pytest.raises(DiagnosisFailed) as exc:
        asyncio.run(gateway.diagnose_crop_disease("abc"))
    assert isinstance(exc.value.__cause__, JSONExtractionError)


def test_cloud_llm_without_key():
    llm = CloudLLMService(api_key="")

    assert not llm.is_available
    with pytest.raises(LLMNotConfiguredError):
        asyncio.run(llm.complete_text("system", "user"))
    assert llm.get_service_status()["client_initialized"] is False
