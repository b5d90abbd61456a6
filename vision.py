"""
Heuristic leaf-image analysis using Pillow.

Two independent pieces:

* check_plant() - a colour-ratio gate that rejects photos which are clearly
  not plants (people, red/warm scenes, bare soil) before any diagnosis.
* ImageClassifier - scores a fixed table of disease signatures against coarse
  edge, brightness-band and texture statistics of a 224x224 luminance grid.

Neither is a trained model. Both are deterministic functions of the pixels.
"""

import colorsys
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from errors import ImageDecodeError
from schemas import ClassificationResult

IMAGE_SIZE = 224

EDGE_THRESHOLD = 0.1
SMOOTH_THRESHOLD = 0.05
ROUGH_THRESHOLD = 0.2
AFFECTED_THRESHOLD = 0.6
DETECTION_THRESHOLD = 0.3


@dataclass(frozen=True)
class DiseaseSignature:
    name: str
    patterns: Tuple[str, ...]
    base_confidence: float
    severity: str
    symptoms: Tuple[str, ...]
    recommendations: Tuple[str, ...]


DISEASE_SIGNATURES: Tuple[DiseaseSignature, ...] = (
    # yellowing_leaves has no scoring rule, so only rings and brown spots count here
    DiseaseSignature(
        "Tomato Early Blight",
        ("concentric_rings", "brown_spots", "yellowing_leaves"),
        0.92,
        "moderate",
        ("Brown spots with concentric rings", "Yellowing of older leaves", "Target-like lesions"),
        ("Apply copper-based fungicides", "Remove infected leaves", "Ensure proper air circulation"),
    ),
    DiseaseSignature(
        "Tomato Late Blight",
        ("water_soaked", "large_brown_patches", "white_mold"),
        0.88,
        "severe",
        ("Water-soaked lesions", "Large brown patches", "White cottony growth"),
        ("Apply metalaxyl fungicides", "Destroy infected plants", "Improve drainage"),
    ),
    DiseaseSignature(
        "Tomato Leaf Curl Virus",
        ("leaf_curling", "stunted_growth", "yellowing"),
        0.85,
        "moderate",
        ("Upward curling of leaves", "Stunted growth", "Yellowing"),
        ("Remove infected plants", "Control whiteflies", "Use resistant varieties"),
    ),
    DiseaseSignature(
        "Tomato Bacterial Spot",
        ("small_spots", "water_soaked", "necrotic"),
        0.79,
        "mild",
        ("Small water-soaked spots", "Necrotic lesions on fruits"),
        ("Apply copper bactericides", "Avoid working when wet"),
    ),
    DiseaseSignature(
        "Powdery Mildew",
        ("white_powder", "surface_growth", "spreading"),
        0.86,
        "mild",
        ("White powdery growth on leaves", "Spreads rapidly"),
        ("Apply sulfur fungicides", "Improve air circulation"),
    ),
    DiseaseSignature(
        "Rice Blast",
        ("diamond_shaped", "gray_centers", "spindle_shaped"),
        0.87,
        "severe",
        ("Diamond-shaped lesions", "Gray centers on lesions"),
        ("Apply tricyclazole fungicides", "Use resistant varieties"),
    ),
    DiseaseSignature(
        "Wheat Rust",
        ("reddish_brown", "pustules", "leaf_surface"),
        0.89,
        "moderate",
        ("Reddish-brown pustules on leaves",),
        ("Apply systemic fungicides", "Monitor disease development"),
    ),
)


def load_image(data: bytes) -> Image.Image:
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e
    return img


def resample(img: Image.Image) -> Image.Image:
    return img.convert("RGB").resize((IMAGE_SIZE, IMAGE_SIZE))


def rgb_pixels(img: Image.Image) -> List[Tuple[int, int, int]]:
    data = resample(img).tobytes()
    return list(zip(data[0::3], data[1::3], data[2::3]))


def luminance(img: Image.Image) -> List[float]:
    """Row-major grayscale values in [0, 1] of the resampled image."""
    return [(0.299 * r + 0.587 * g + 0.114 * b) / 255.0 for (r, g, b) in rgb_pixels(img)]


# Feature extraction
def edge_density(signal: Sequence[float], width: int = IMAGE_SIZE) -> float:
    limit = len(signal) - width
    if limit <= 1:
        return 0.0
    count = 0
    for i in range(1, limit):
        current = signal[i]
        if abs(current - signal[i + 1]) > EDGE_THRESHOLD:
            count += 1
        if abs(current - signal[i + width]) > EDGE_THRESHOLD:
            count += 1
    return count / limit


def color_bands(signal: Sequence[float]) -> Dict[str, float]:
    brown = yellow = white = dark = 0
    for value in signal:
        if 0.3 < value < 0.5:
            brown += 1
        elif 0.5 < value < 0.7:
            yellow += 1
        elif value > 0.7:
            white += 1
        else:
            dark += 1
    total = len(signal) or 1
    return {"brown": brown / total, "yellow": yellow / total, "white": white / total, "dark": dark / total}


def texture(signal: Sequence[float]) -> Dict[str, float]:
    smooth = irregular = 0
    for i in range(1, len(signal) - 1):
        diff = abs(signal[i] - signal[i - 1])
        if diff < SMOOTH_THRESHOLD:
            smooth += 1
        elif diff > ROUGH_THRESHOLD:
            irregular += 1
    total = max(len(signal) - 1, 1)
    return {"smooth": smooth / total, "irregular": irregular / total}


def affected_area(signal: Sequence[float]) -> float:
    if not signal:
        return 0.0
    affected = sum(1 for value in signal if value < AFFECTED_THRESHOLD)
    return affected / len(signal) * 100


@dataclass(frozen=True)
class ImageFeatures:
    edges: float
    brown: float
    yellow: float
    white: float
    dark: float
    smooth: float
    irregular: float

    @classmethod
    def from_signal(cls, signal: Sequence[float]) -> "ImageFeatures":
        bands = color_bands(signal)
        tex = texture(signal)
        return cls(
            edges=edge_density(signal),
            brown=bands["brown"],
            yellow=bands["yellow"],
            white=bands["white"],
            dark=bands["dark"],
            smooth=tex["smooth"],
            irregular=tex["irregular"],
        )


# pattern -> (credit, test on features)
PATTERN_RULES = (
    ("concentric_rings", 0.4, lambda f: f.edges > 0.3),
    ("brown_spots", 0.3, lambda f: f.brown > 0.4),
    ("yellowing", 0.2, lambda f: f.yellow > 0.3),
    ("white_powder", 0.3, lambda f: f.smooth > 0.5),
    ("water_soaked", 0.4, lambda f: f.dark > 0.5),
    ("leaf_curling", 0.3, lambda f: f.irregular > 0.4),
)


def pattern_score(patterns: Sequence[str], features: ImageFeatures) -> float:
    score = sum(credit for name, credit, test in PATTERN_RULES if name in patterns and test(features))
    return max(0.0, min(1.0, score))


class ImageClassifier:
    def __init__(
        self,
        signatures: Sequence[DiseaseSignature] = DISEASE_SIGNATURES,
        detection_threshold: float = DETECTION_THRESHOLD,
    ):
        self.signatures = tuple(signatures)
        self.detection_threshold = detection_threshold

    def rank(self, img: Image.Image) -> List[ClassificationResult]:
        signal = luminance(img)
        features = ImageFeatures.from_signal(signal)
        area = affected_area(signal)

        results = []
        for sig in self.signatures:
            raw = pattern_score(sig.patterns, features)
            if raw <= self.detection_threshold:
                continue
            results.append(ClassificationResult(
                disease=sig.name,
                confidence=raw * sig.base_confidence,
                severity=sig.severity,
                affected_area_percent=area,
                symptoms=list(sig.symptoms),
                recommendations=list(sig.recommendations),
                analysis_type="cnn-based",
            ))
        # sorted() is stable, so exact ties keep table order
        return sorted(results, key=lambda r: r.confidence, reverse=True)

    def classify(self, img: Image.Image) -> Optional[ClassificationResult]:
        ranked = self.rank(img)
        return ranked[0] if ranked else None

    def classify_bytes(self, data: bytes) -> Optional[ClassificationResult]:
        return self.classify(load_image(data))


# Plant-presence gate
LOW_VEGETATION = 0.20


def _is_skin(r: int, g: int, b: int) -> bool:
    return (
        r > 95 and g > 40 and b > 20
        and max(r, g, b) - min(r, g, b) > 15
        and abs(r - g) > 15 and r > g and r > b
    )


def _is_green(r: int, g: int, b: int) -> bool:
    return g > r and g > b and g > 40


def _is_vegetation(r: int, g: int, b: int) -> bool:
    h, s, v = colorsys.rgb_to_hsv(r / 255.0, g / 255.0, b / 255.0)
    return 60 / 360 <= h <= 170 / 360 and s > 0.2 and v > 0.15


def _is_red_dominant(r: int, g: int, b: int) -> bool:
    return r > 80 and r > 1.4 * g and r > 1.4 * b


def _is_warm(r: int, g: int, b: int) -> bool:
    return r > g > b and r > 120 and r - b > 50


def _is_brown(r: int, g: int, b: int) -> bool:
    return r > g > b and 60 <= r <= 200 and r - g > 15 and r - b > 30


def color_ratios(img: Image.Image) -> Dict[str, float]:
    counts = {"skin": 0, "green": 0, "vegetation": 0, "red": 0, "warm": 0, "brown": 0}
    sum_r = sum_g = sum_b = 0
    pixels = rgb_pixels(img)
    for (r, g, b) in pixels:
        sum_r += r
        sum_g += g
        sum_b += b
        if _is_skin(r, g, b):
            counts["skin"] += 1
        if _is_green(r, g, b):
            counts["green"] += 1
        if _is_vegetation(r, g, b):
            counts["vegetation"] += 1
        if _is_red_dominant(r, g, b):
            counts["red"] += 1
        if _is_warm(r, g, b):
            counts["warm"] += 1
        if _is_brown(r, g, b):
            counts["brown"] += 1
    total = len(pixels)
    ratios = {name: count / total for name, count in counts.items()}
    ratios["avgRed"] = sum_r / total
    ratios["avgGreen"] = sum_g / total
    ratios["avgBlue"] = sum_b / total
    return ratios


@dataclass
class PlantCheck:
    is_plant: bool
    reason: str
    confidence: float
    ratios: Dict[str, float] = field(default_factory=dict)


def _rejection(ratios: Dict[str, float]) -> Optional[Tuple[str, float]]:
    skin, green, veg = ratios["skin"], ratios["green"], ratios["vegetation"]
    red, warm, brown = ratios["red"], ratios["warm"], ratios["brown"]
    low_veg = veg < LOW_VEGETATION

    if skin > 0.25:
        return "Image appears to show a person (skin tones detected), not a plant", min(0.95, 0.6 + skin / 2)
    if red > 0.40 and green < 0.15:
        return "Image is dominated by red tones with very little green", min(0.9, 0.5 + red / 2)
    if ratios["avgRed"] > ratios["avgGreen"] and ratios["avgRed"] > ratios["avgBlue"] and low_veg:
        return "Overall colour balance is red-shifted with little vegetation", 0.7
    if warm > 0.35 and low_veg:
        return "Image is dominated by warm tones (skin, wood or food) with little vegetation", min(0.9, 0.5 + warm / 2)
    if skin > 0.12 and warm > 0.25 and low_veg:
        return "Skin and warm tones with little vegetation suggest a person or indoor scene", 0.75
    if green < 0.12 and veg < 0.08:
        return "Not enough green or plant-coloured area was found in the image", 0.8
    if brown > 0.45 and green < 0.15 and veg < 0.15:
        return "Image is mostly brown (soil or wood) with little vegetation", 0.7
    return None


def check_plant(img: Image.Image) -> PlantCheck:
    ratios = color_ratios(img)
    rejected = _rejection(ratios)
    if rejected:
        reason, confidence = rejected
        return PlantCheck(False, reason, round(confidence, 2), ratios)
    confidence = min(0.95, 0.5 + max(ratios["green"], ratios["vegetation"]) / 2)
    return PlantCheck(True, "Plant-like colours detected", round(confidence, 2), ratios)
