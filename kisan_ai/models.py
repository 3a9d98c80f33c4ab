# in kisan_ai/models.py

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Records go over the wire with camelCase keys (userId, createdAt, ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Store records ---

class User(CamelModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    location: Optional[str] = None
    language: Optional[str] = "en"
    created_at: datetime
    updated_at: datetime


class DiseaseScan(CamelModel):
    id: int
    user_id: str
    image_data: str
    diagnosis: Optional[str] = None
    confidence: Optional[int] = None
    remedies: List[str] = []
    scan_date: datetime


ActivityType = Literal["scan", "market", "scheme", "voice", "weather"]


class Activity(CamelModel):
    id: int
    user_id: str
    type: ActivityType
    title: str
    description: Optional[str] = None
    icon: Optional[str] = None
    created_at: datetime


# --- Catalog records ---

Trend = Literal["up", "down", "stable"]


class MarketPrice(CamelModel):
    crop: str
    price: int  # paise
    unit: str = "kg"
    market: str
    trend: Trend
    trend_percentage: int


class Scheme(CamelModel):
    id: int
    name: str
    description: str
    amount: str
    eligibility: List[str]
    application_link: str
    category: str
    status: Literal["eligible", "under_review", "not_eligible"]


# --- Weather ---

class DayForecast(CamelModel):
    date: str
    temperature: int
    condition: str
    rainfall: float
    humidity: int


class WeatherData(CamelModel):
    location: str
    temperature: int
    humidity: int
    rainfall: float
    condition: str
    advice: str
    forecast: Optional[List[DayForecast]] = None
    source: Literal["openweathermap", "synthetic"] = "synthetic"


# --- AI gateway results ---

class DiseaseDiagnosis(BaseModel):
    disease: str
    confidence: int = Field(ge=0, le=100)
    remedies: List[str] = []
    severity: Optional[str] = None


class MarketPrediction(BaseModel):
    crop: str = ""
    predicted_price: str = ""
    trend: str = "stable"


class MarketAnalysis(BaseModel):
    analysis: str = ""
    predictions: List[MarketPrediction] = []
    recommendations: List[str] = []
