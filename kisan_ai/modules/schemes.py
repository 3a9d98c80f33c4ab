# in kisan_ai/modules/schemes.py

import logging
from typing import Any, Dict, List, Optional

from ..models import Scheme

logger = logging.getLogger(__name__)

DEFAULT_SCHEMES = [
    {
        "id": 1,
        "name": "PM-KISAN Scheme",
        "description": "Direct income support of ₹6,000 per year to eligible farmer families",
        "amount": "₹6,000/year",
        "eligibility": [
            "Small and marginal farmers",
            "Landholding up to 2 hectares",
            "Valid Aadhaar card",
        ],
        "application_link": "https://pmkisan.gov.in/",
        "category": "income_support",
        "status": "eligible",
    },
    {
        "id": 2,
        "name": "Drip Irrigation Subsidy",
        "description": "Up to 50% subsidy on drip irrigation systems",
        "amount": "50% subsidy",
        "eligibility": [
            "Farmers with irrigation facilities",
            "Minimum 0.5 hectare land",
            "No previous subsidy claimed",
        ],
        "application_link": "https://pmksy.gov.in/",
        "category": "subsidy",
        "status": "under_review",
    },
    {
        "id": 3,
        "name": "Crop Insurance Scheme",
        "description": "Comprehensive risk solution for crop loss coverage",
        "amount": "Up to ₹2 lakh coverage",
        "eligibility": [
            "All farmers (loanee and non-loanee)",
            "Coverage for pre-sowing to post-harvest",
            "Premium varies by crop",
        ],
        "application_link": "https://pmfby.gov.in/",
        "category": "insurance",
        "status": "eligible",
    },
    {
        "id": 4,
        "name": "Soil Health Card Scheme",
        "description": "Free soil testing and nutrient recommendations",
        "amount": "Free service",
        "eligibility": [
            "All farmers",
            "Valid land documents",
        ],
        "application_link": "https://soilhealth.dac.gov.in/",
        "category": "advisory",
        "status": "eligible",
    },
]

# Checked in order; the first group with a keyword in the query wins.
RECOMMENDATION_RULES = [
    (["income", "money", "support"],
     "Based on your query, I recommend the PM-KISAN Scheme which provides ₹6,000 per year direct income support to eligible farmers."),
    (["irrigation", "water", "drip"],
     "For irrigation needs, the Drip Irrigation Subsidy scheme offers up to 50% subsidy on drip irrigation systems."),
    (["insurance", "crop loss", "protection"],
     "The Crop Insurance Scheme provides comprehensive coverage for crop losses with coverage up to ₹2 lakh."),
    (["soil", "fertilizer", "nutrients"],
     "The Soil Health Card Scheme provides free soil testing and nutrient recommendations to optimize your crop yield."),
]

GENERAL_RECOMMENDATION = (
    "I found several relevant schemes. The PM-KISAN scheme provides direct income support, "
    "while other schemes offer subsidies for irrigation, crop insurance, and soil health services."
)


class SchemesService:
    """Government scheme catalog with search and keyword recommendations"""

    def __init__(self, schemes: Optional[List[Dict[str, Any]]] = None):
        rows = DEFAULT_SCHEMES if schemes is None else schemes
        self.schemes: List[Scheme] = [Scheme(**row) for row in rows]
        logger.info(f"Scheme catalog loaded with {len(self.schemes)} schemes")

    def list_schemes(self) -> List[Scheme]:
        return list(self.schemes)

    def scheme_by_id(self, scheme_id: int) -> Optional[Scheme]:
        return next((s for s in self.schemes if s.id == scheme_id), None)

    def search(self, query: str) -> List[Scheme]:
        q = query.lower()
        return [
            s for s in self.schemes
            if q in s.name.lower() or q in s.description.lower() or q in s.category.lower()
        ]

    def by_category(self, category: str) -> List[Scheme]:
        return [s for s in self.schemes if s.category == category]

    def recommend(self, user_query: str) -> str:
        query = user_query.lower()
        for keywords, recommendation in RECOMMENDATION_RULES:
            if any(keyword in query for keyword in keywords):
                return recommendation
        return GENERAL_RECOMMENDATION
