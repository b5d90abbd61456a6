from dataclasses import asdict, dataclass
from datetime import date
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Place:
    city: str
    state: str
    region: str
    latitude: float
    longitude: float
    country: str = "India"


CITIES = [
    Place("Delhi", "Delhi", "north", 28.6139, 77.2090),
    Place("Mumbai", "Maharashtra", "west", 19.0760, 72.8777),
    Place("Chennai", "Tamil Nadu", "south", 13.0827, 80.2707),
    Place("Kolkata", "West Bengal", "east", 22.5726, 88.3639),
    Place("Bangalore", "Karnataka", "south", 12.9716, 77.5946),
    Place("Hyderabad", "Telangana", "south", 17.3850, 78.4867),
    Place("Ahmedabad", "Gujarat", "west", 23.0225, 72.5714),
    Place("Pune", "Maharashtra", "west", 18.5204, 73.8567),
    Place("Madurai", "Tamil Nadu", "south", 9.9252, 78.1198),
    Place("Coimbatore", "Tamil Nadu", "south", 11.0168, 76.9558),
    Place("Tiruchirappalli", "Tamil Nadu", "south", 10.7905, 78.7047),
    Place("Jaipur", "Rajasthan", "west", 26.9124, 75.7873),
    Place("Lucknow", "Uttar Pradesh", "north", 26.8467, 80.9462),
    Place("Kochi", "Kerala", "south", 9.9312, 76.2673),
    Place("Bhopal", "Madhya Pradesh", "central", 23.2599, 77.4126),
]

CITY_MATCH_DEGREES = 0.5

REGIONAL_WEATHER = {
    "north": {"temp": {"winter": 15, "summer": 35, "monsoon": 28}, "humidity": 40, "rainfall": 200},
    "south": {"temp": {"winter": 25, "summer": 38, "monsoon": 30}, "humidity": 60, "rainfall": 300},
    "east": {"temp": {"winter": 20, "summer": 37, "monsoon": 32}, "humidity": 70, "rainfall": 400},
    "west": {"temp": {"winter": 22, "summer": 36, "monsoon": 29}, "humidity": 50, "rainfall": 250},
    "central": {"temp": {"winter": 18, "summer": 40, "monsoon": 31}, "humidity": 35, "rainfall": 150},
}

# region -> season -> [(crop, reason, confidence)]
CROP_TABLE = {
    "north": {
        "summer": [
            ("Rice", "High temperature and irrigation facilities in northern plains", 0.9),
            ("Cotton", "Warm climate suitable for cotton cultivation", 0.85),
            ("Sugarcane", "Long growing season and high temperature", 0.8),
            ("Maize", "Ideal temperature for maize cultivation", 0.82),
        ],
        "winter": [
            ("Wheat", "Cooler temperatures ideal for wheat in Indo-Gangetic plains", 0.95),
            ("Mustard", "Winter conditions perfect for mustard cultivation", 0.88),
            ("Potato", "Cool weather suitable for tuber crops", 0.85),
            ("Peas", "Cool season crop perfect for northern winters", 0.8),
        ],
        "monsoon": [
            ("Rice", "Abundant rainfall for paddy cultivation", 0.95),
            ("Maize", "High humidity and rainfall support maize", 0.82),
            ("Soybean", "Monsoon conditions ideal for soybean", 0.78),
            ("Pigeon Pea", "Well-suited for monsoon conditions", 0.75),
        ],
    },
    "south": {
        "summer": [
            ("Mango", "Tropical climate perfect for mango cultivation", 0.92),
            ("Coconut", "High humidity and temperature ideal for coconut", 0.88),
            ("Banana", "Warm climate year-round cultivation", 0.85),
            ("Cashew", "Tropical conditions suitable for cashew", 0.82),
        ],
        "winter": [
            ("Tomato", "Mild winter temperatures ideal for tomato", 0.87),
            ("Brinjal", "Cooler temperatures reduce pest pressure", 0.82),
            ("Chili", "Optimal temperature for chili cultivation", 0.8),
            ("Onion", "Ideal conditions for bulb formation", 0.78),
        ],
        "monsoon": [
            ("Rice", "Heavy rainfall suitable for paddy cultivation", 0.94),
            ("Turmeric", "High humidity required for turmeric", 0.86),
            ("Ginger", "Monsoon conditions ideal for ginger", 0.84),
            ("Black Pepper", "Requires high humidity and rainfall", 0.8),
        ],
    },
    "east": {
        "summer": [
            ("Jute", "Ideal conditions for jute cultivation", 0.9),
            ("Rice", "Suitable for summer rice cultivation", 0.85),
            ("Maize", "Warm climate suitable for maize", 0.8),
        ],
        "winter": [
            ("Rice", "Winter rice cultivation in eastern regions", 0.88),
            ("Wheat", "Suitable for wheat in eastern plains", 0.82),
            ("Lentil", "Ideal for winter lentil cultivation", 0.8),
        ],
        "monsoon": [
            ("Rice", "Heavy rainfall perfect for paddy", 0.95),
            ("Jute", "Monsoon conditions ideal for jute", 0.88),
            ("Mesta", "Suitable for mesta cultivation", 0.75),
        ],
    },
    "west": {
        "summer": [
            ("Cotton", "Ideal conditions for cotton in western India", 0.92),
            ("Sugarcane", "Long season suitable for sugarcane", 0.88),
            ("Groundnut", "Warm climate ideal for groundnut", 0.85),
            ("Bajra", "Drought-resistant crop for arid regions", 0.82),
        ],
        "winter": [
            ("Wheat", "Suitable for winter wheat cultivation", 0.85),
            ("Gram", "Ideal conditions for gram cultivation", 0.8),
            ("Mustard", "Winter conditions suitable for mustard", 0.78),
        ],
        "monsoon": [
            ("Cotton", "Monsoon supports cotton cultivation", 0.88),
            ("Soybean", "Suitable for soybean in western regions", 0.82),
            ("Tur", "Ideal conditions for tur cultivation", 0.75),
        ],
    },
    "central": {
        "summer": [
            ("Wheat", "Suitable for summer wheat in central India", 0.85),
            ("Soybean", "Warm climate suitable for soybean", 0.82),
            ("Gram", "Ideal conditions for gram cultivation", 0.8),
        ],
        "winter": [
            ("Wheat", "Primary wheat growing region", 0.92),
            ("Gram", "Ideal for winter gram cultivation", 0.88),
            ("Mustard", "Suitable for mustard in central regions", 0.82),
        ],
        "monsoon": [
            ("Rice", "Monsoon rice cultivation possible", 0.85),
            ("Soybean", "Ideal for soybean in monsoon", 0.88),
            ("Cotton", "Suitable for cotton cultivation", 0.8),
        ],
    },
}

DISEASE_TABLE = {
    "north": {
        "summer": ["Leaf Blight", "Powdery Mildew", "Fruit Rot", "Aphid Attack", "Thrips"],
        "winter": ["Wheat Rust", "Loose Smut", "Karnal Bunt", "Yellow Rust", "Brown Rust"],
        "monsoon": ["Rice Blast", "Leaf Spot", "Root Rot", "Sheath Blight", "Bacterial Leaf Blight"],
    },
    "south": {
        "summer": ["Mosaic Virus", "Fruit Borer", "Wilt", "Leaf Curl Virus", "Mites"],
        "winter": ["Early Blight", "Leaf Curl", "Fruit Spot", "Powdery Mildew", "Downy Mildew"],
        "monsoon": ["Bacterial Blight", "Anthracnose", "Downy Mildew", "Leaf Spot", "Root Rot"],
    },
    "east": {
        "summer": ["Jute Stem Rot", "Powdery Mildew", "Leaf Spot", "Aphids", "Jute Hairy Caterpillar"],
        "winter": ["Wheat Brown Rust", "Lentil Wilt", "Pea Powdery Mildew", "Mustard Alternaria", "Chickpea Wilt"],
        "monsoon": ["Rice Blast", "Sheath Blight", "Bacterial Leaf Blight", "Tungro Virus", "Rice Tungro"],
    },
    "west": {
        "summer": ["Cotton Leaf Curl", "Boll Rot", "Powdery Mildew", "Aphids", "Whitefly"],
        "winter": ["Wheat Rust", "Gram Blight", "Mustard White Rust", "Safflower Rust", "Groundnut Leaf Spot"],
        "monsoon": ["Cotton Wilt", "Soybean Rust", "Groundnut Tikka", "Castor Wilt", "Sugarcane Red Rot"],
    },
    "central": {
        "summer": ["Wheat Rust", "Soybean Rust", "Gram Blight", "Maize Stunt", "Sorghum Downy Mildew"],
        "winter": ["Wheat Loose Smut", "Karnal Bunt", "Gram Wilt", "Lentil Blight", "Pea Powdery Mildew"],
        "monsoon": ["Rice Blast", "Soybean Rust", "Cotton Wilt", "Maize Downy Mildew", "Groundnut Leaf Spot"],
    },
}

REGION_TIPS = {
    "north": [
        "Consider crop rotation with wheat-rice-maize cycle for optimal yields",
        "Implement conservation agriculture practices in Indo-Gangetic plains",
        "Use certified seeds and follow recommended sowing times",
    ],
    "south": [
        "Utilize organic farming practices for better soil health in tropical regions",
        "Implement integrated pest management for high humidity conditions",
        "Consider intercropping with coconut and banana for better income",
    ],
    "east": [
        "Practice system of rice intensification (SRI) for better yields",
        "Implement proper water management in flood-prone areas",
        "Use salt-tolerant varieties in coastal regions",
    ],
    "west": [
        "Implement drip irrigation for water conservation in arid regions",
        "Use drought-resistant crop varieties and mulching techniques",
        "Practice watershed management for rainwater harvesting",
    ],
    "central": [
        "Follow balanced fertilization for soybean and wheat crops",
        "Implement zero tillage conservation agriculture practices",
        "Use crop residue management for soil moisture conservation",
    ],
}

SEASON_TIPS = {
    "summer": [
        "Provide adequate irrigation during critical growth stages",
        "Use mulching to conserve soil moisture",
        "Monitor for heat stress and provide shade if needed",
    ],
    "monsoon": [
        "Ensure proper field drainage to prevent waterlogging",
        "Apply nitrogen fertilizers in split doses",
        "Monitor for pest outbreaks due to high humidity",
    ],
    "winter": [
        "Protect crops from frost in northern regions",
        "Apply balanced fertilizers for winter crops",
        "Monitor for temperature fluctuations",
    ],
    "spring": [
        "Prepare fields for summer crop planting",
        "Apply organic matter to improve soil fertility",
        "Plan crop rotation for the upcoming season",
    ],
}


def season_for(month: int) -> str:
    """Season for a 1-based month number."""
    if 3 <= month <= 5:
        return "summer"
    if 6 <= month <= 9:
        return "monsoon"
    if 10 <= month <= 12:
        return "winter"
    return "spring"


def region_from_coordinates(lat: float, lon: float) -> str:
    if 28 < lat < 33 and 76 < lon < 81:
        return "north"
    if 8 < lat < 14 and 76 < lon < 80:
        return "south"
    if 21 < lat < 27 and 88 < lon < 93:
        return "east"
    if 18 < lat < 25 and 72 < lon < 78:
        return "west"
    if 20 < lat < 25 and 75 < lon < 79:
        return "central"
    return "south"


class LocationService:
    def __init__(self, cities: List[Place] = CITIES):
        self.cities = list(cities)

    def search(self, query: str) -> List[Dict]:
        q = (query or "").strip().lower()
        if not q:
            return []
        return [asdict(c) for c in self.cities if q in c.city.lower()]

    def resolve(self, lat: float, lon: float) -> Place:
        for city in self.cities:
            if abs(lat - city.latitude) < CITY_MATCH_DEGREES and abs(lon - city.longitude) < CITY_MATCH_DEGREES:
                return Place(city.city, city.state, city.region, lat, lon)
        return Place("Unknown", "Unknown", region_from_coordinates(lat, lon), lat, lon, "Unknown")

    def weather(self, region: str, season: str) -> Dict:
        data = REGIONAL_WEATHER.get(region, REGIONAL_WEATHER["north"])
        return {
            "temperature": data["temp"].get(season, 25),
            "humidity": data["humidity"],
            "rainfall": data["rainfall"],
            "season": season,
        }

    def recommended_crops(self, region: str, season: str, limit: int = 4) -> List[Dict]:
        table = CROP_TABLE.get(region, CROP_TABLE["north"])
        rows = table.get(season, table["summer"])
        rows = sorted(rows, key=lambda row: row[2], reverse=True)[:limit]
        return [
            {"crop": crop, "season": season.capitalize(), "reason": reason, "confidence": conf}
            for crop, reason, conf in rows
        ]

    def common_diseases(self, region: str, season: str) -> List[str]:
        table = DISEASE_TABLE.get(region, DISEASE_TABLE["north"])
        return list(table.get(season, table["summer"]))

    def farming_tips(self, place: Place, weather: Dict) -> List[str]:
        season = weather["season"]
        temp = weather["temperature"]
        humidity = weather["humidity"]
        rainfall = weather["rainfall"]
        tips = [
            f"Based on {season} season in {place.state}, consider "
            + ("flood-resistant crops and proper drainage" if season == "monsoon"
               else "drought-resistant varieties and irrigation planning"),
            f"Current temperature ({temp}°C) is ideal for "
            + ("heat-tolerant crops like cotton, sugarcane, and millets" if temp > 30
               else "cool-season vegetables like tomato, brinjal, and chili"),
            f"Humidity level ({humidity}%) suggests "
            + ("monitor for fungal diseases and ensure proper air circulation" if humidity > 60
               else "good conditions for most crops with lower disease pressure"),
            ("High rainfall in your region requires proper drainage systems and raised beds" if rainfall > 300
             else "Moderate rainfall in your region requires efficient irrigation planning and water conservation"),
            f"Soil testing recommended before planting in {place.region} region to determine nutrient requirements and pH levels",
        ]
        tips.extend(REGION_TIPS.get(place.region, []))
        tips.extend(SEASON_TIPS.get(season, []))
        return tips[:6]

    def suggestions(self, lat: float, lon: float, today: Optional[date] = None) -> Dict:
        place = self.resolve(lat, lon)
        season = season_for((today or date.today()).month)
        weather = self.weather(place.region, season)
        return {
            "location": asdict(place),
            "weather": weather,
            "recommendedCrops": self.recommended_crops(place.region, season),
            "commonDiseases": self.common_diseases(place.region, season),
            "farmingTips": self.farming_tips(place, weather),
        }
