# in kisan_ai/modules/weather.py

import asyncio
import logging
import math
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from config import config
from ..models import DayForecast, WeatherData

logger = logging.getLogger(__name__)

CONDITION_MAP = {
    "Clear": "Sunny",
    "Clouds": "Cloudy",
    "Rain": "Rainy",
    "Drizzle": "Light Rain",
    "Thunderstorm": "Stormy",
    "Snow": "Snowy",
    "Mist": "Misty",
    "Fog": "Foggy",
}

# 3-hour steps: 8 entries cover the next 24h, 35 cover about 5 days
RAINFALL_WINDOW = 8
FORECAST_WINDOW = 35


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _round_1dp(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def map_condition(condition: str) -> str:
    return CONDITION_MAP.get(condition, condition)


def season_for_month(month_index: int) -> str:
    """Season for a 0-indexed month (0 = January)."""
    if 5 <= month_index <= 9:
        return "monsoon"
    if month_index >= 10 or month_index <= 2:
        return "winter"
    return "shoulder"


def most_frequent(values: List[str]) -> str:
    """Most common value; among ties the one that sorts last in input order wins."""
    if not values:
        return ""
    return sorted(values, key=values.count)[-1]


def generate_farming_advice(temperature: float, humidity: float, rainfall: float, condition: str) -> str:
    advice = []

    if temperature > 35:
        advice.append("Very hot weather. Provide shade for crops and increase irrigation frequency.")
    elif temperature > 30:
        advice.append("Hot weather. Water crops early morning or evening to prevent heat stress.")
    elif temperature < 15:
        advice.append("Cool weather. Protect sensitive crops from cold. Reduce watering frequency.")
    else:
        advice.append("Favorable temperature for most crops.")

    if humidity > 80:
        advice.append("High humidity increases risk of fungal diseases. Ensure good air circulation.")
    elif humidity < 40:
        advice.append("Low humidity may stress plants. Consider light misting in evening.")

    if rainfall > 10:
        advice.append("Heavy rainfall expected. Ensure proper drainage to prevent waterlogging.")
    elif rainfall > 2:
        advice.append("Moderate rainfall expected. Good for irrigation savings.")
    else:
        advice.append("Little to no rainfall. Plan irrigation accordingly.")

    if "storm" in (condition or "").lower():
        advice.append("Storm warning! Secure crops and equipment. Avoid outdoor farm work.")

    return " ".join(advice)


class WeatherService:
    """Weather service using OpenWeatherMap API, with a seasonal synthetic fallback"""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None, rng: Optional[random.Random] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = config.OPENWEATHER_API_KEY if api_key is None else api_key
        self.base_url = base_url or config.OPENWEATHER_BASE_URL
        self.timeout = timeout or config.WEATHER_TIMEOUT_SECONDS
        self.rng = rng or random.Random()
        self.clock = clock
        self.transport = transport
        self.is_available = bool(self.api_key)

        if not self.api_key:
            logger.warning("OpenWeatherMap API key not configured, using synthetic weather")

    async def get_current_weather(self, location: Optional[str] = None) -> WeatherData:
        """
        Get current conditions, a daily forecast and farming advice for a place

        Args:
            location: Free-text place name, e.g. "Mysore, Karnataka, IN"

        Returns:
            WeatherData; synthetic when the provider is unconfigured or fails
        """
        if location is None:
            location = config.DEFAULT_LOCATION

        if not self.api_key:
            return self._get_synthetic_weather(location)

        try:
            return await asyncio.wait_for(self._fetch_weather_data(location), timeout=self.timeout)
        except Exception as e:
            logger.warning(f"Weather API error for '{location}': {e!r}. Using synthetic weather")
            return self._get_synthetic_weather(location)

    async def _fetch_weather_data(self, location: str) -> WeatherData:
        """Fetch current weather and the 5-day forecast from OpenWeatherMap"""
        params = {
            "q": location,
            "appid": self.api_key,
            "units": "metric",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            current_response, forecast_response = await asyncio.gather(
                client.get(f"{self.base_url}/weather", params=params),
                client.get(f"{self.base_url}/forecast", params=params),
            )
            current_response.raise_for_status()
            forecast_response.raise_for_status()

            return self._process_weather_data(current_response.json(), forecast_response.json())

    def _process_weather_data(self, current_data: Dict[str, Any], forecast_data: Dict[str, Any]) -> WeatherData:
        """Process raw provider payloads into WeatherData"""
        temperature = _round_half_up(current_data["main"]["temp"])
        humidity = int(current_data["main"]["humidity"])
        condition = current_data["weather"][0]["main"]

        entries = forecast_data.get("list", [])
        rainfall = sum(item.get("rain", {}).get("3h", 0) for item in entries[:RAINFALL_WINDOW])

        return WeatherData(
            location=f"{current_data['name']}, {current_data['sys']['country']}",
            temperature=temperature,
            humidity=humidity,
            rainfall=_round_1dp(rainfall),
            condition=map_condition(condition),
            advice=generate_farming_advice(temperature, humidity, rainfall, condition),
            forecast=self._format_forecast(entries, forecast_data.get("city", {}).get("timezone", 0)),
            source="openweathermap",
        )

    def _format_forecast(self, entries: List[Dict[str, Any]], utc_offset_seconds: int = 0) -> List[DayForecast]:
        """Group 3-hourly entries by local calendar date"""
        tz = timezone(timedelta(seconds=utc_offset_seconds or 0))
        daily: Dict[str, Dict[str, Any]] = {}

        for item in entries[:FORECAST_WINDOW]:
            date_key = datetime.fromtimestamp(item["dt"], tz=tz).date().isoformat()
            day = daily.setdefault(date_key, {"temps": [], "conditions": [], "rainfall": 0.0, "humidity": []})
            day["temps"].append(item["main"]["temp"])
            day["conditions"].append(item["weather"][0]["main"])
            day["rainfall"] += item.get("rain", {}).get("3h", 0)
            day["humidity"].append(item["main"]["humidity"])

        return [
            DayForecast(
                date=date_key,
                temperature=_round_half_up(sum(day["temps"]) / len(day["temps"])),
                condition=map_condition(most_frequent(day["conditions"])),
                rainfall=_round_1dp(day["rainfall"]),
                humidity=_round_half_up(sum(day["humidity"]) / len(day["humidity"])),
            )
            for date_key, day in daily.items()
        ]

    def seasonal_baseline(self, location: str, when: Optional[datetime] = None) -> Dict[str, Any]:
        """Un-jittered baseline for a place and date"""
        when = when or self.clock()
        season = season_for_month(when.month - 1)
        place = (location or "").lower()
        for region, seasons in config.REGIONAL_WEATHER_BASELINES.items():
            if region in place:
                return dict(seasons[season])
        return dict(config.DEFAULT_WEATHER_BASELINE)

    def _get_synthetic_weather(self, location: str) -> WeatherData:
        """Plausible weather from season and region when live data is unavailable"""
        baseline = self.seasonal_baseline(location)
        base_rainfall = baseline["rainfall"] + self.rng.random() * baseline["rainfall_spread"]

        temperature = _round_half_up(baseline["temperature"] + (self.rng.random() * 6 - 3))
        humidity = _round_half_up(baseline["humidity"] + (self.rng.random() * 20 - 10))
        humidity = max(30, min(95, humidity))
        rainfall = max(0.0, _round_1dp(base_rainfall * (0.5 + self.rng.random())))
        condition = baseline["condition"]

        return WeatherData(
            location=location or "Karnataka, India",
            temperature=temperature,
            humidity=humidity,
            rainfall=rainfall,
            condition=condition,
            advice=generate_farming_advice(temperature, humidity, rainfall, condition),
            source="synthetic",
        )

    def get_service_status(self) -> Dict[str, Any]:
        return {
            "is_available": self.is_available,
            "provider": "OpenWeatherMap" if self.is_available else "synthetic",
            "base_url": self.base_url,
        }
