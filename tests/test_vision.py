import pytest
from PIL import Image

from errors import ImageDecodeError
from tests.helpers import ROUGH_LEAF, checkerboard, image_bytes, oversized_png, skin_photo
from vision import (
    DISEASE_SIGNATURES,
    ImageClassifier,
    ImageFeatures,
    affected_area,
    check_plant,
    color_bands,
    edge_density,
    load_image,
    pattern_score,
    texture,
)


def test_load_image_rejects_garbage():
    with pytest.raises(ImageDecodeError):
        load_image(b"definitely not a jpeg")


def test_load_image_rejects_decompression_bomb():
    with pytest.raises(ImageDecodeError):
        load_image(oversized_png())


def test_flat_signal_has_no_edges():
    assert edge_density([0.4] * (224 * 224)) == 0.0
    assert edge_density([0.4] * 10) == 0.0


def test_color_bands_partition_the_signal():
    bands = color_bands([0.1, 0.4, 0.6, 0.9])
    assert bands == {"brown": 0.25, "yellow": 0.25, "white": 0.25, "dark": 0.25}


def test_texture_counts_pairs_before_the_last():
    # only the 0->0.3 step is counted; the total still spans every pair
    assert texture([0.0, 0.3, 0.3]) == {"smooth": 0.0, "irregular": 0.5}


def test_affected_area_is_percent_below_threshold():
    assert affected_area([0.2, 0.5, 0.8, 0.9]) == 50.0
    assert affected_area([]) == 0.0


def test_pattern_score_is_clamped():
    features = ImageFeatures(edges=1, brown=1, yellow=1, white=0, dark=1, smooth=1, irregular=1)
    everything = ("concentric_rings", "brown_spots", "yellowing", "white_powder", "water_soaked", "leaf_curling")
    assert pattern_score(everything, features) == 1.0
    assert pattern_score(("pustules",), features) == 0.0


def test_textured_leaf_is_classified_as_early_blight():
    result = ImageClassifier().classify(checkerboard())
    assert result is not None
    assert result.disease == "Tomato Early Blight"
    assert result.analysis_type == "cnn-based"
    assert 0 < result.confidence <= 1
    # only concentric rings (0.4) fire, scaled by the signature's base confidence
    assert result.confidence == pytest.approx(0.4 * 0.92)
    assert result.affected_area_percent == 0.0


def test_early_blight_gets_no_credit_for_yellow_band():
    ranked = ImageClassifier().rank(checkerboard(*ROUGH_LEAF))
    by_name = {r.disease: r.confidence for r in ranked}
    assert by_name["Tomato Early Blight"] == pytest.approx(0.4 * 0.92)
    assert by_name["Tomato Leaf Curl Virus"] == pytest.approx(0.5 * 0.85)


def test_results_are_ranked_by_confidence():
    ranked = ImageClassifier().rank(checkerboard(*ROUGH_LEAF))
    assert [r.disease for r in ranked][:2] == ["Tomato Leaf Curl Virus", "Tomato Early Blight"]
    confidences = [r.confidence for r in ranked]
    assert confidences == sorted(confidences, reverse=True)


def test_flat_image_detects_nothing():
    classifier = ImageClassifier()
    assert classifier.classify(Image.new("RGB", (300, 200), (128, 128, 128))) is None


def test_every_signature_scores_within_bounds():
    img = checkerboard(light=(200, 180, 60), dark=(90, 60, 30))
    for result in ImageClassifier(DISEASE_SIGNATURES, detection_threshold=0.0).rank(img):
        assert 0.0 <= result.confidence <= 1.0


def test_classify_bytes():
    assert ImageClassifier().classify_bytes(image_bytes(checkerboard())) is not None


# Plant gate
def test_leaf_passes_plant_check():
    check = check_plant(checkerboard())
    assert check.is_plant
    assert check.ratios["green"] == pytest.approx(1.0)


def test_person_is_rejected():
    check = check_plant(skin_photo())
    assert not check.is_plant
    assert "person" in check.reason
    assert 0.6 < check.confidence <= 0.95


def test_red_scene_is_rejected():
    check = check_plant(Image.new("RGB", (100, 100), (220, 30, 30)))
    assert not check.is_plant
    assert "red" in check.reason


def test_blank_image_is_rejected_for_missing_green():
    check = check_plant(Image.new("RGB", (100, 100), (255, 255, 255)))
    assert not check.is_plant
    assert "green" in check.reason
