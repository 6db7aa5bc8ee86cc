from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from models.vision import VisionAnalysis, VisionClient, parse_analysis
from pipeline.config import Settings
from pipeline.errors import PaymentRequired, RateLimited, VisionAnalysisError


def client(status=200, body=None, key="test-key"):
    session = MagicMock()
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.text = "error body"
    response.json.return_value = body or {}
    session.post.return_value = response
    return VisionClient(Settings(vision_api_key=key), session=session), session


def reply(content):
    return {"choices": [{"message": {"content": content}}]}


def test_parse_fenced_json():
    text = 'Here you go:\n```json\n{"objectType": "Animal", "species": "Leaf-tailed gecko", "confidence": 88}\n```'
    analysis = parse_analysis(text)
    assert analysis.object_type == "Animal"
    assert analysis.species == "Leaf-tailed gecko"
    assert analysis.confidence == 88


def test_parse_bare_object_in_prose():
    text = 'Result {"objectType": "No animal detected", "confidence": 150, "location": null} done'
    analysis = parse_analysis(text)
    assert analysis.object_type == "No animal detected"
    assert analysis.confidence == 100
    assert analysis.location == ""


def test_parse_falls_back_to_raw_text():
    analysis = parse_analysis("I think there is a moth on the bark.")
    assert analysis.object_type == "Unknown"
    assert analysis.confidence == 50
    assert analysis.description == "I think there is a moth on the bark."


def test_analysis_serializes_with_camel_case():
    dumped = VisionAnalysis(object_type="Animal", camouflage_analysis="blends").model_dump(by_alias=True)
    assert dumped["objectType"] == "Animal"
    assert dumped["camouflageAnalysis"] == "blends"


def test_analyze_posts_image_and_mask():
    vc, session = client(body=reply('{"objectType": "Animal", "species": "Owl"}'))
    analysis = vc.analyze(b"img", "image/jpeg", mask_bytes=b"mask")

    assert analysis.species == "Owl"
    _, kwargs = session.post.call_args
    assert kwargs["headers"]["Authorization"] == "Bearer test-key"
    content = kwargs["json"]["messages"][1]["content"]
    assert len(content) == 4
    assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")
    assert kwargs["timeout"] == vc.config.vision_timeout


@pytest.mark.parametrize(
    "status, error",
    [(429, RateLimited), (402, PaymentRequired), (500, VisionAnalysisError)],
)
def test_analyze_maps_http_errors(status, error):
    vc, _ = client(status=status)
    with pytest.raises(error):
        vc.analyze(b"img")


def test_analyze_wraps_transport_errors():
    vc, session = client()
    session.post.side_effect = requests.Timeout("slow")
    with pytest.raises(VisionAnalysisError):
        vc.analyze(b"img")


def test_analyze_requires_key():
    vc, session = client(key=None)
    with pytest.raises(VisionAnalysisError):
        vc.analyze(b"img")
    session.post.assert_not_called()
