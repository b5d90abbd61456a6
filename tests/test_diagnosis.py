import pytest

from diagnosis import (
    INSUFFICIENT_EVIDENCE,
    DiagnosisService,
    apply_confidence_floor,
    combine,
    fuse,
    match_symptoms,
)
from errors import ImageRejectedError, ValidationError
from schemas import ClassificationResult
from tests.helpers import oversized_png
from vision import ImageClassifier


def result(disease, confidence, analysis_type="cnn-based", **kwargs):
    fields = dict(
        severity="moderate",
        affected_area_percent=30.0,
        symptoms=[f"{disease} symptom"],
        recommendations=[f"Treat {disease}"],
    )
    fields.update(kwargs)
    return ClassificationResult(disease=disease, confidence=confidence, analysis_type=analysis_type, **fields)


# Symptom matching
def test_no_symptoms_no_match():
    assert match_symptoms("Tomato", []) is None
    assert match_symptoms("Tomato", ["", ""]) is None


def test_full_match_picks_early_blight():
    match = match_symptoms("Tomato", ["Brown spots", "Yellowing leaves"])
    assert match.disease == "Early Blight"
    assert match.confidence == 0.92
    assert match.analysis_type == "symptom-based"
    assert match.affected_area_percent == 50.0
    assert match.recommendations[0] == "Apply copper-based fungicides every 7-10 days"


def test_highest_share_of_listed_symptoms_wins():
    # Fusarium matches 1 of 3, Late Blight 1 of 4
    assert match_symptoms("Tomato", ["Wilting"]).disease == "Fusarium Wilt"


def test_ties_keep_table_order():
    # nothing matches, so every score is zero and the first entry stands
    assert match_symptoms("Tomato", ["Black mold"]).disease == "Early Blight"
    assert match_symptoms("Rice", ["Black mold"]).disease == "Rice Blast"


def test_unknown_crop_uses_tomato_table():
    assert match_symptoms("Mango", ["Leaf curling"]).disease == "Leaf Curl Virus"
    assert match_symptoms("  rice ", ["Yellowing leaves"]).disease == "Bacterial Leaf Blight"


# Fusion and the confidence floor
def test_trusted_image_dominates_fusion():
    fused = fuse(result("Tomato Early Blight", 0.9), result("Late Blight", 0.6, "symptom-based"))
    assert fused.disease == "Tomato Early Blight"
    assert fused.confidence == pytest.approx(0.81)
    assert fused.analysis_type == "combined"
    assert fused.affected_area_percent == pytest.approx(40.0)
    assert fused.symptoms == ["Tomato Early Blight symptom", "Late Blight symptom"]


def test_weak_image_defers_to_symptoms():
    fused = fuse(result("Tomato Leaf Curl Virus", 0.7), result("Early Blight", 0.85, "symptom-based"))
    assert fused.disease == "Early Blight"
    assert fused.confidence == pytest.approx(0.775)


def test_fusion_deduplicates_lists():
    image = result("A", 0.9, recommendations=["Remove infected leaves", "Spray"])
    symptoms = result("B", 0.9, "symptom-based", recommendations=["Spray", "Rotate crops"])
    assert fuse(image, symptoms).recommendations == ["Remove infected leaves", "Spray", "Rotate crops"]


def test_floor_falls_back_to_confident_symptoms():
    weak = result("Combined", 0.7, "combined")
    strong_symptoms = result("Early Blight", 0.92, "symptom-based")
    assert apply_confidence_floor(weak, strong_symptoms) is strong_symptoms
    assert apply_confidence_floor(weak, result("X", 0.76, "symptom-based")) is None
    assert apply_confidence_floor(weak, None) is None
    assert apply_confidence_floor(None, None) is None


def test_floor_is_inclusive():
    at_floor = result("Boll Rot", 0.8, "symptom-based")
    assert combine(None, at_floor) is at_floor


def test_combine_single_sources():
    image = result("Rice Blast", 0.85)
    assert combine(image, None) is image
    assert combine(result("Rice Blast", 0.5), None) is None


# Service
@pytest.fixture
def service():
    return DiagnosisService(ImageClassifier())


def test_service_requires_evidence(service):
    with pytest.raises(ValidationError):
        service.diagnose(None, ["Wilting"])
    with pytest.raises(ValidationError):
        service.diagnose("Tomato", ["  "])


def test_service_symptom_only(service):
    outcome = service.diagnose("Tomato", ["Brown spots", "Yellowing leaves"])
    assert outcome.diagnosis.disease == "Early Blight"
    assert outcome.message is None
    assert outcome.plant_check is None


def test_service_reports_insufficient_evidence(service):
    outcome = service.diagnose("Tomato", ["Fruit spots"])
    assert outcome.diagnosis is None
    assert outcome.message == INSUFFICIENT_EVIDENCE


def test_undecodable_image_degrades_to_symptoms(service):
    outcome = service.diagnose("Tomato", ["Brown spots", "Yellowing leaves"], b"\x89PNG broken")
    assert outcome.diagnosis.analysis_type == "symptom-based"
    assert outcome.plant_check is None


def test_non_plant_photo_is_rejected(service, selfie_png):
    with pytest.raises(ImageRejectedError) as exc:
        service.diagnose("Tomato", ["Wilting"], selfie_png)
    assert exc.value.status_code == 400
    assert exc.value.extra["isPlant"] is False


def test_image_and_symptoms_combined(service, leaf_png):
    # image: Tomato Early Blight at 0.368, symptoms: Early Blight at 0.92
    outcome = service.diagnose("Tomato", ["Brown spots", "Yellowing leaves"], leaf_png)
    assert outcome.plant_check.is_plant
    # 0.5 * 0.368 + 0.5 * 0.92 = 0.644 is under the floor, so the symptom result stands
    assert outcome.diagnosis.analysis_type == "symptom-based"
    assert outcome.diagnosis.disease == "Early Blight"


def test_oversized_image_degrades_to_symptoms(service):
    outcome = service.diagnose("Tomato", ["Brown spots", "Yellowing leaves"], oversized_png())
    assert outcome.diagnosis.analysis_type == "symptom-based"
    assert outcome.plant_check is None


# Endpoints
def test_options(client):
    body = client.get("/api/diseases/options").json()
    assert "Tomato" in body["crops"]
    assert "Brown spots" in body["symptoms"]


def test_diagnose_with_comma_separated_symptoms(client):
    resp = client.post(
        "/api/diagnose",
        data={"crop_type": "Tomato", "symptoms": "Brown spots, Yellowing leaves", "language": "hi"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["diagnosis"]["disease"] == "Early Blight"
    assert body["diagnosis"]["analysisType"] == "symptom-based"
    assert body["message"] is None
    assert body["language"] == "hi"


def test_diagnose_low_confidence(client):
    body = client.post("/api/diagnose", data={"crop_type": "Tomato", "symptoms": ["Fruit spots"]}).json()
    assert body["diagnosis"] is None
    assert body["message"] == INSUFFICIENT_EVIDENCE


def test_diagnose_without_evidence(client):
    assert client.post("/api/diagnose", data={"crop_type": "Tomato"}).status_code == 400


def test_diagnose_rejects_non_plant_upload(client, selfie_png):
    resp = client.post(
        "/api/diagnose",
        data={"crop_type": "Tomato", "symptoms": ["Wilting"]},
        files={"image": ("selfie.png", selfie_png, "image/png")},
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["isPlant"] is False
    assert "person" in body["error"]


def test_diagnose_image_only(client, leaf_png):
    resp = client.post("/api/diagnose", files={"image": ("leaf.png", leaf_png, "image/png")})
    assert resp.status_code == 200
    body = resp.json()
    # 0.368 from the image alone is below the floor with no symptoms to fall back on
    assert body["diagnosis"] is None
    assert body["plantCheck"]["isPlant"] is True


def test_diagnose_oversized_upload_uses_symptoms(client):
    resp = client.post(
        "/api/diagnose",
        data={"crop_type": "Tomato", "symptoms": ["Brown spots", "Yellowing leaves"]},
        files={"image": ("huge.png", oversized_png(), "image/png")},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["diagnosis"]["analysisType"] == "symptom-based"
    assert body["diagnosis"]["disease"] == "Early Blight"
