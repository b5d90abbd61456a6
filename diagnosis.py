"""
Symptom matching and result fusion.

The symptom matcher picks the best entry from a small per-crop table by the
share of its listed symptoms the farmer ticked. fuse() blends that with the
image classifier's output, and apply_confidence_floor() decides whether
anything is confident enough to show.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from errors import ImageDecodeError, ImageRejectedError, ValidationError
from schemas import ClassificationResult, PlantCheckResult
from vision import ImageClassifier, check_plant, load_image

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.8
HIGH_IMAGE_CONFIDENCE = 0.8
SYMPTOM_AFFECTED_AREA = 50.0

INSUFFICIENT_EVIDENCE = (
    "Prediction confidence is too low. Please upload a clearer image and select accurate symptoms."
)

SYMPTOMS = [
    "Yellowing leaves",
    "Brown spots",
    "Wilting",
    "Leaf curling",
    "White patches",
    "Black mold",
    "Stunted growth",
    "Fruit spots",
    "Stem lesions",
    "Root rot",
]

CROP_TYPES = ["Tomato", "Rice", "Wheat", "Cotton", "Chili", "Brinjal", "Potato", "Mango", "Citrus", "Grapes"]


@dataclass(frozen=True)
class SymptomProfile:
    disease: str
    symptoms: tuple
    confidence: float
    description: str
    treatment: str
    prevention: str


DISEASES_BY_CROP = {
    "Tomato": [
        SymptomProfile(
            "Early Blight",
            ("Brown spots", "Yellowing leaves"),
            0.92,
            "Early blight is a fungal disease that causes dark brown spots with concentric rings on older leaves. It thrives in warm, humid conditions.",
            "Apply copper-based fungicides every 7-10 days. Remove infected leaves. Ensure proper air circulation and avoid overhead irrigation.",
            "Use resistant varieties, maintain proper spacing, apply preventive fungicides, and keep foliage dry.",
        ),
        SymptomProfile(
            "Late Blight",
            ("Brown spots", "White patches", "Wilting", "Stem lesions"),
            0.88,
            "Late blight spreads fast in cool, wet weather, producing water-soaked lesions that turn brown with white growth underneath.",
            "Spray metalaxyl or mancozeb at first sign. Destroy infected plants. Improve field drainage.",
            "Avoid overhead watering, use certified seed, and remove volunteer plants.",
        ),
        SymptomProfile(
            "Leaf Curl Virus",
            ("Leaf curling", "Yellowing leaves", "Stunted growth"),
            0.85,
            "A whitefly-borne virus causing upward leaf curling, yellow margins and stunted plants.",
            "Remove infected plants. Control whiteflies with neem oil or yellow sticky traps. Use resistant varieties.",
            "Raise seedlings under insect netting and control whiteflies early.",
        ),
        SymptomProfile(
            "Fusarium Wilt",
            ("Wilting", "Yellowing leaves", "Root rot"),
            0.84,
            "A soil-borne fungus that blocks water movement, causing one-sided yellowing and wilting.",
            "Remove wilted plants. Drench soil with Trichoderma. Rotate with non-host crops.",
            "Use resistant varieties and solarize infested beds.",
        ),
        SymptomProfile(
            "Bacterial Spot",
            ("Fruit spots", "Stem lesions"),
            0.76,
            "Small water-soaked spots on leaves and fruit that turn dark and scabby; spread by splashing water.",
            "Apply copper bactericides. Avoid working in the field when plants are wet. Remove infected debris.",
            "Use disease-free seed and transplants and rotate away from tomato and pepper.",
        ),
    ],
    "Rice": [
        SymptomProfile(
            "Rice Blast",
            ("Brown spots", "Stem lesions", "Stunted growth"),
            0.87,
            "Rice blast forms diamond-shaped lesions with grey centres on leaves and necks.",
            "Apply tricyclazole at boot leaf stage. Avoid excess nitrogen. Drain the field briefly.",
            "Use resistant varieties and balanced fertilization.",
        ),
        SymptomProfile(
            "Bacterial Leaf Blight",
            ("Yellowing leaves", "Wilting"),
            0.83,
            "Yellow to straw-coloured stripes from leaf tips, with wilting of seedlings (kresek).",
            "Drain excess water. Apply copper oxychloride with streptocycline. Avoid clipping seedlings.",
            "Use clean seed and avoid excess nitrogen.",
        ),
        SymptomProfile(
            "Sheath Blight",
            ("Stem lesions", "Brown spots", "Root rot"),
            0.8,
            "Oval greenish-grey lesions on sheaths near the water line that merge and rot tillers.",
            "Apply hexaconazole or validamycin. Reduce plant density. Remove infected stubble.",
            "Maintain wider spacing and balanced nitrogen.",
        ),
    ],
    "Wheat": [
        SymptomProfile(
            "Wheat Rust",
            ("Brown spots", "Yellowing leaves"),
            0.89,
            "Rust fungi form reddish-brown or yellow pustules on leaves and stems.",
            "Spray propiconazole at first sight. Monitor disease development weekly.",
            "Grow resistant varieties and sow on time.",
        ),
        SymptomProfile(
            "Powdery Mildew",
            ("White patches", "Yellowing leaves", "Stunted growth"),
            0.86,
            "White powdery coating on the upper leaf surface, worst in cool humid weather.",
            "Apply sulfur 80WP. Improve air circulation. Avoid excess nitrogen.",
            "Use resistant varieties and balanced fertilization.",
        ),
    ],
    "Potato": [
        SymptomProfile(
            "Late Blight",
            ("Brown spots", "White patches", "Wilting"),
            0.88,
            "Dark brown patches with white mould beneath leaves and rapid collapse of foliage.",
            "Spray metalaxyl with mancozeb urgently. Remove infected plants. Hill up tubers.",
            "Use certified seed tubers and avoid overhead irrigation.",
        ),
        SymptomProfile(
            "Early Blight",
            ("Brown spots", "Yellowing leaves"),
            0.85,
            "Dark spots with concentric rings and yellow halos on older leaves.",
            "Apply mancozeb 2g/L. Remove lower infected leaves. Rotate crops.",
            "Keep plants well fed and avoid water stress.",
        ),
    ],
    "Cotton": [
        SymptomProfile(
            "Cotton Leaf Curl",
            ("Leaf curling", "Stunted growth", "Yellowing leaves"),
            0.84,
            "Viral disease spread by whiteflies, causing thickened veins and curled leaves.",
            "Uproot infected plants. Control whiteflies. Avoid late sowing.",
            "Grow tolerant hybrids and remove weed hosts.",
        ),
        SymptomProfile(
            "Boll Rot",
            ("Fruit spots", "Black mold"),
            0.8,
            "Bolls develop dark water-soaked spots and rot in humid weather.",
            "Apply copper oxychloride. Remove rotten bolls. Improve canopy aeration.",
            "Avoid dense planting and excess irrigation at boll formation.",
        ),
    ],
    "Chili": [
        SymptomProfile(
            "Anthracnose",
            ("Fruit spots", "Black mold", "Brown spots"),
            0.85,
            "Sunken dark lesions on ripening fruit with black fruiting bodies.",
            "Spray carbendazim or mancozeb. Remove infected fruit. Avoid overhead watering.",
            "Use disease-free seed and rotate crops.",
        ),
        SymptomProfile(
            "Chili Leaf Curl",
            ("Leaf curling", "Stunted growth"),
            0.83,
            "Leaves curl and pucker, plants are bushy and stunted; spread by thrips, mites and whiteflies.",
            "Remove infected plants. Control vectors with neem oil. Use reflective mulch.",
            "Raise nurseries under net and use tolerant varieties.",
        ),
    ],
}

DEFAULT_CROP = "Tomato"


def _lookup_crop(crop: Optional[str]) -> List[SymptomProfile]:
    if crop:
        for name, diseases in DISEASES_BY_CROP.items():
            if name.lower() == crop.strip().lower():
                return diseases
    return DISEASES_BY_CROP[DEFAULT_CROP]


def match_symptoms(crop: Optional[str], selected: Sequence[str]) -> Optional[ClassificationResult]:
    """Best disease for the ticked symptoms, or None when nothing is ticked.

    Score is matched / listed symptoms; only a strictly higher score replaces
    the current best, so ties keep the first table entry.
    """
    chosen = [s for s in selected if s]
    if not chosen:
        return None

    diseases = _lookup_crop(crop)
    best = diseases[0]
    best_score = 0.0
    for entry in diseases:
        matched = sum(1 for s in entry.symptoms if s in chosen)
        score = matched / len(entry.symptoms)
        if score > best_score:
            best_score = score
            best = entry

    return ClassificationResult(
        disease=best.disease,
        confidence=best.confidence,
        severity="moderate",
        affected_area_percent=SYMPTOM_AFFECTED_AREA,
        symptoms=list(dict.fromkeys(chosen)),
        recommendations=[r for r in best.treatment.split(". ") if r],
        analysis_type="symptom-based",
        description=best.description,
        prevention=best.prevention,
    )


def _union(*lists: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(item for items in lists for item in items))


def fuse(image_result: ClassificationResult, symptom_result: ClassificationResult) -> ClassificationResult:
    image_trusted = image_result.confidence > HIGH_IMAGE_CONFIDENCE
    image_weight = 0.7 if image_trusted else 0.5
    symptom_weight = 1 - image_weight
    confidence = image_result.confidence * image_weight + symptom_result.confidence * symptom_weight

    return ClassificationResult(
        disease=image_result.disease if image_trusted else symptom_result.disease,
        confidence=min(1.0, confidence),
        severity=image_result.severity,
        affected_area_percent=(image_result.affected_area_percent + SYMPTOM_AFFECTED_AREA) / 2,
        symptoms=_union(image_result.symptoms, symptom_result.symptoms),
        recommendations=_union(image_result.recommendations, symptom_result.recommendations),
        analysis_type="combined",
        description=(
            f"Combined analysis of image and symptoms. Image analysis detected {image_result.disease} "
            f"while symptom analysis suggested {symptom_result.disease}."
        ),
        prevention=symptom_result.prevention,
    )


def apply_confidence_floor(
    result: Optional[ClassificationResult],
    symptom_result: Optional[ClassificationResult],
    floor: float = MIN_CONFIDENCE,
) -> Optional[ClassificationResult]:
    if result is None or result.confidence >= floor:
        return result
    if symptom_result is not None and symptom_result.confidence >= floor:
        return symptom_result
    return None


def combine(
    image_result: Optional[ClassificationResult],
    symptom_result: Optional[ClassificationResult],
) -> Optional[ClassificationResult]:
    if image_result and symptom_result:
        result = fuse(image_result, symptom_result)
    else:
        result = image_result or symptom_result
    return apply_confidence_floor(result, symptom_result)


@dataclass
class DiagnosisOutcome:
    diagnosis: Optional[ClassificationResult]
    plant_check: Optional[PlantCheckResult] = None

    @property
    def message(self) -> Optional[str]:
        return None if self.diagnosis else INSUFFICIENT_EVIDENCE


class DiagnosisService:
    def __init__(self, classifier: ImageClassifier):
        self.classifier = classifier

    def diagnose(
        self,
        crop_type: Optional[str],
        symptoms: Sequence[str],
        image_bytes: Optional[bytes] = None,
    ) -> DiagnosisOutcome:
        symptoms = [s.strip() for s in symptoms if s and s.strip()]
        if not crop_type and not image_bytes:
            raise ValidationError("Please select crop type and at least one symptom")
        if not symptoms and not image_bytes:
            raise ValidationError("Please select at least one symptom or upload an image")

        image_result = None
        plant_check = None
        if image_bytes:
            try:
                img = load_image(image_bytes)
            except ImageDecodeError as e:
                # fall through to the symptom-only path
                logger.warning("Image analysis skipped: %s", e)
            else:
                gate = check_plant(img)
                plant_check = PlantCheckResult(
                    is_plant=gate.is_plant,
                    reason=gate.reason,
                    confidence=gate.confidence,
                    ratios={k: round(v, 4) for k, v in gate.ratios.items()},
                )
                if not gate.is_plant:
                    raise ImageRejectedError(
                        gate.reason, extra={"isPlant": False, "confidence": gate.confidence}
                    )
                image_result = self.classifier.classify(img)

        symptom_result = match_symptoms(crop_type, symptoms)
        return DiagnosisOutcome(combine(image_result, symptom_result), plant_check)
