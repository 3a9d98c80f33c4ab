# in kisan_ai/modules/market.py

import logging
from typing import Any, Dict, List, Optional

from ..models import MarketPrice

logger = logging.getLogger(__name__)

# Mock mandi data, prices in paise per unit
DEFAULT_MARKET_DATA = [
    {"crop": "Tomato", "price": 2500, "unit": "kg", "market": "Bangalore Mandi", "trend": "up", "trend_percentage": 5},
    {"crop": "Onion", "price": 1800, "unit": "kg", "market": "Bangalore Mandi", "trend": "down", "trend_percentage": -3},
    {"crop": "Rice", "price": 3200, "unit": "kg", "market": "Bangalore Mandi", "trend": "up", "trend_percentage": 2},
    {"crop": "Wheat", "price": 2800, "unit": "kg", "market": "Bangalore Mandi", "trend": "stable", "trend_percentage": 0},
    {"crop": "Maize", "price": 2200, "unit": "kg", "market": "Bangalore Mandi", "trend": "up", "trend_percentage": 4},
]


class MarketService:
    """Crop price catalog with rule-based trend insights"""

    def __init__(self, market_data: Optional[List[Dict[str, Any]]] = None):
        rows = DEFAULT_MARKET_DATA if market_data is None else market_data
        self.prices: List[MarketPrice] = [MarketPrice(**row) for row in rows]
        logger.info(f"Market catalog loaded with {len(self.prices)} crops")

    def list_prices(self) -> List[MarketPrice]:
        return list(self.prices)

    def price_for(self, crop_name: str) -> Optional[MarketPrice]:
        """Case-insensitive exact match on crop name."""
        wanted = crop_name.lower()
        return next((p for p in self.prices if p.crop.lower() == wanted), None)

    def insight_for(self, crop_name: str) -> str:
        crop_data = self.price_for(crop_name)
        if not crop_data:
            return "No market data available for this crop."

        if crop_data.trend == "up":
            return (f"{crop_name} prices are trending increasing by {crop_data.trend_percentage}% this week. "
                    "Consider selling your harvest in the next 2-3 days for maximum profit.")
        elif crop_data.trend == "down":
            return (f"{crop_name} prices are decreasing by {abs(crop_data.trend_percentage)}% this week. "
                    "You may want to hold off selling or consider alternative crops for next season.")
        else:
            return (f"{crop_name} prices are stable this week. "
                    "Good time for steady sales at current market rates.")
