"""
Simulated mandi prices, trends and sell/hold advice.

Prices are generated from a per-crop base (rupees per quintal) with random
variation. Price alerts live only in this process's memory: they are lost on
restart and are not shared between worker processes.
"""

import logging
import math
import random
import threading
from datetime import date, timedelta
from typing import Dict, List, Optional

from schemas import PriceAlert, PriceAlertIn

logger = logging.getLogger(__name__)

KG_PER_QUINTAL = 100

BASE_PRICES = {
    "Rice": (1800, 0.15),
    "Wheat": (2200, 0.12),
    "Tomato": (1800, 0.25),
    "Potato": (1200, 0.18),
    "Onion": (2500, 0.30),
    "Brinjal": (1600, 0.20),
    "Chili": (8000, 0.22),
    "Cotton": (6000, 0.15),
    "Sugarcane": (3000, 0.10),
    "Maize": (1500, 0.18),
}

AVAILABLE_CROPS = [
    "Rice", "Wheat", "Tomato", "Potato", "Onion", "Brinjal",
    "Chili", "Cotton", "Sugarcane", "Maize", "Mustard", "Gram",
    "Tur", "Urad", "Moong", "Masoor", "Soybean",
]

AVAILABLE_MANDIS = [
    "Chennai", "Madurai", "Coimbatore", "Tiruchirappalli", "Salem",
    "Mumbai", "Pune", "Nagpur", "Nashik", "Ahmedabad", "Surat",
    "Bangalore", "Mysore", "Hubli", "Belgaum", "Dharwad",
    "Delhi", "Lucknow", "Kanpur", "Agra", "Varanasi",
    "Kolkata", "Asansol", "Durgapur", "Siliguri", "Malda",
    "Jaipur", "Jodhpur", "Udaipur", "Kota", "Ajmer",
    "Hyderabad", "Vijayawada", "Visakhapatnam", "Warangal", "Nizamabad",
]

MANDI_STATE = {
    "Chennai": "Tamil Nadu", "Madurai": "Tamil Nadu", "Coimbatore": "Tamil Nadu",
    "Tiruchirappalli": "Tamil Nadu", "Mumbai": "Maharashtra", "Pune": "Maharashtra",
    "Nagpur": "Maharashtra", "Bangalore": "Karnataka", "Mysore": "Karnataka",
    "Ahmedabad": "Gujarat", "Surat": "Gujarat", "Delhi": "Delhi",
    "Lucknow": "Uttar Pradesh", "Kolkata": "West Bengal", "Jaipur": "Rajasthan",
}

MANDI_REGION = {
    "Chennai": "south", "Madurai": "south", "Coimbatore": "south", "Tiruchirappalli": "south",
    "Bangalore": "south", "Mysore": "south", "Hyderabad": "south",
    "Mumbai": "west", "Pune": "west", "Ahmedabad": "west", "Surat": "west", "Jaipur": "west",
    "Delhi": "north", "Lucknow": "north", "Kolkata": "east",
}

NEARBY_MANDIS = {
    "Tamil Nadu": [("Chennai", 0), ("Madurai", 120), ("Coimbatore", 180), ("Tiruchirappalli", 150), ("Salem", 200)],
    "Maharashtra": [("Mumbai", 0), ("Pune", 150), ("Nagpur", 250), ("Nashik", 200)],
    "Karnataka": [("Bangalore", 0), ("Mysore", 140), ("Hubli", 180), ("Belgaum", 220)],
    "Gujarat": [("Ahmedabad", 0), ("Surat", 160), ("Vadodara", 110), ("Rajkot", 200)],
}

# indexed by month (0 = January); months past the end use 1.0
SEASONAL_FACTORS = {
    "Rice": [0.9, 0.85, 0.95, 1.0, 1.05, 1.1, 1.15, 1.1, 1.05, 1.0, 0.95],
    "Tomato": [1.2, 1.1, 0.9, 0.8, 0.9, 1.2, 1.4, 1.3, 1.1, 0.9, 0.8],
    "Onion": [1.3, 1.2, 1.1, 0.9, 0.8, 0.9, 1.1, 1.3, 1.4, 1.3, 1.1],
    "Potato": [0.95, 0.9, 0.85, 0.8, 0.85, 1.0, 1.1, 1.05, 1.0, 0.95, 0.9],
    "Wheat": [0.9, 0.85, 0.95, 1.0, 1.05, 1.1, 1.15, 1.1, 1.05, 1.0, 0.95],
}


def seasonal_factor(crop: str, month_index: int) -> float:
    factors = SEASONAL_FACTORS.get(crop, SEASONAL_FACTORS["Rice"])
    return factors[month_index] if month_index < len(factors) else 1.0


def analyze_prices(prices: List[float], volumes: List[float]) -> Dict[str, float]:
    avg = sum(prices) / len(prices)
    steps = max(len(prices) - 1, 1)
    slope = sum(prices[i] - prices[i - 1] for i in range(1, len(prices))) / steps
    volatility = math.sqrt(sum((p - avg) ** 2 for p in prices) / len(prices))
    volume_slope = sum(volumes[i] - volumes[i - 1] for i in range(1, len(volumes))) / steps
    return {"slope": slope, "volatility": volatility, "avgPrice": avg, "volumeSlope": volume_slope}


def advise(crop: str, current_price: float, analysis: Dict[str, float]) -> Dict:
    slope = analysis["slope"]
    volatility = analysis["volatility"]
    expected = current_price

    if slope > 10:
        action, confidence, timeframe = "wait", 0.85, "5-7 days"
        reason = f"Strong upward trend detected. {crop} prices have increased by {abs(slope):.1f}% in the last week."
        expected = round(current_price * (1 + slope / 100))
        risk = "high" if volatility > 50 else "low"
    elif slope < -10:
        action, confidence, timeframe = "sell_now", 0.85, "2-3 days"
        reason = f"Downward trend detected. {crop} prices have decreased by {abs(slope):.1f}% in the last week."
        expected = round(current_price * (1 + slope / 100))
        risk = "high" if volatility > 50 else "low"
    elif volatility > 30:
        action, confidence, timeframe, risk = "hold", 0.6, "3-5 days", "high"
        reason = "High market volatility detected. Best to hold position and monitor closely."
    else:
        action, confidence, timeframe, risk = "hold", 0.7, "4-6 days", "low"
        reason = "Market is relatively stable. Current price is close to weekly average."

    if analysis["volumeSlope"] > 100:
        confidence += 0.1
        reason += " High trading volume indicates strong market interest."
    elif analysis["volumeSlope"] < -100:
        confidence -= 0.1
        reason += " Low trading volume may indicate weak demand."

    return {
        "recommendation": action,
        "confidence": round(min(confidence, 0.95), 2),
        "reason": reason,
        "expectedPrice": expected,
        "timeframe": timeframe,
        "priceChange": round(expected - current_price),
        "riskLevel": risk,
    }


class MarketPriceService:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self._alerts: List[PriceAlert] = []
        self._lock = threading.Lock()

    def _trend(self) -> Dict:
        roll = self.rng.random()
        if roll > 0.6:
            return {"direction": "up", "changePercent": round(2 + self.rng.random() * 8, 2)}
        if roll < 0.4:
            return {"direction": "down", "changePercent": round(-(2 + self.rng.random() * 8), 2)}
        return {"direction": "stable", "changePercent": 0.0}

    def current_price(self, crop: str, mandi: str) -> Dict:
        base, _volatility = BASE_PRICES.get(crop, BASE_PRICES["Rice"])
        price = round(base * (0.95 + self.rng.random() * 0.1))
        trend = self._trend()
        return {
            "crop": crop,
            "mandi": mandi,
            "location": {
                "city": mandi,
                "state": MANDI_STATE.get(mandi, "Unknown"),
                "region": MANDI_REGION.get(mandi, "south"),
            },
            "price": price,
            "unit": "quintal",
            "date": date.today().isoformat(),
            "trend": trend["direction"],
            "changePercent": trend["changePercent"],
            "pricePerKg": round(price / KG_PER_QUINTAL),
            "pricePerQuintal": price,
        }

    def price_trend(self, crop: str, mandi: str, days: int = 7) -> List[Dict]:
        base = self.current_price(crop, mandi)["price"]
        today = date.today()
        points = []
        for offset in range(days - 1, -1, -1):
            day = today - timedelta(days=offset)
            factor = seasonal_factor(crop, day.month - 1)
            points.append({
                "date": day.isoformat(),
                "price": round(base * factor * (0.9 + self.rng.random() * 0.2)),
                "volume": int(1000 + self.rng.random() * 5000),
            })
        return points

    def recommendation(self, crop: str, mandi: str) -> Dict:
        current = self.current_price(crop, mandi)
        trend = self.price_trend(crop, mandi, 7)
        analysis = analyze_prices([p["price"] for p in trend], [p["volume"] for p in trend])
        return advise(crop, current["price"], analysis)

    def nearby_mandis(self, state: Optional[str]) -> List[Dict]:
        mandis = NEARBY_MANDIS.get(state or "", NEARBY_MANDIS["Tamil Nadu"])
        home = state if state in NEARBY_MANDIS else "Tamil Nadu"
        return [
            {"name": name, "distance": abs(distance), "state": home}
            for name, distance in sorted(mandis, key=lambda m: abs(m[1]))
        ]

    # Alerts
    def add_alert(self, alert: PriceAlertIn) -> PriceAlert:
        stored = PriceAlert(**alert.model_dump(), is_active=True)
        with self._lock:
            self._alerts.append(stored)
        return stored

    def list_alerts(self) -> List[PriceAlert]:
        with self._lock:
            return [a.model_copy() for a in self._alerts]

    def check_alerts(self) -> List[PriceAlert]:
        """Return alerts whose condition now holds and deactivate them."""
        triggered = []
        with self._lock:
            for alert in self._alerts:
                if not alert.is_active:
                    continue
                price = self.current_price(alert.crop, alert.mandi)["price"]
                hit = price >= alert.target_price if alert.condition == "above" else price <= alert.target_price
                if hit:
                    alert.is_active = False
                    triggered.append(alert.model_copy())
                    logger.info("Price alert triggered: %s at %s %s %s", alert.crop, alert.mandi, alert.condition, alert.target_price)
        return triggered
