import httpx
import pytest

from config import settings
from modules.chat import service as chat_module
from modules.chat.service import build_product_context, extract_recommendations


@pytest.fixture
def completion(monkeypatch):
    """Replace the completion API; returns the list of captured request bodies."""
    calls = []

    def install(content=None, status=200):

        def fake_post(url, json=None, headers=None, timeout=None):
            calls.append({"url": url, "json": json, "headers": headers})
            if status != 200:
                return httpx.Response(status, json={"error": {"message": "quota"}})
            return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

        monkeypatch.setattr(chat_module.httpx, "post", fake_post)
        return calls

    return install


def test_reply_resolves_product_markers(client, make_product, completion):
    silk = make_product(name="Kanjivaram Silk", price="12500", occasions=["Wedding"])
    completion(f"You will love the Kanjivaram Silk [PRODUCT:{silk.id}] [PRODUCT:{silk.id}] [PRODUCT:999]")

    resp = client.post("/api/chat", json={"messages": [{"role": "user", "content": "Something for a wedding"}]})

    assert resp.status_code == 200
    body = resp.json()
    assert "[PRODUCT:" not in body["message"]
    assert body["message"].startswith("You will love the Kanjivaram Silk")
    assert body["products"] == [{
        "id": silk.id, "name": "Kanjivaram Silk", "slug": silk.slug, "price": 12500.0,
        "image": silk.primary_image.url, "category": "Silk Sarees",
    }]


def test_request_carries_catalog_and_history(client, make_product, completion):
    make_product(name="Banarasi Silk")
    calls = completion("Hello!")

    client.post("/api/chat", json={"messages": [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "Hello, how can I help?"},
        {"role": "user", "content": "show me silk"},
    ]})

    sent = calls[0]
    assert sent["url"].endswith("/chat/completions")
    assert sent["headers"]["Authorization"] == "Bearer sk-openai-test"
    messages = sent["json"]["messages"]
    assert messages[0]["role"] == "system"
    assert "Name: Banarasi Silk" in messages[0]["content"]
    assert [m["role"] for m in messages[1:]] == ["user", "assistant", "user"]


def test_invalid_history_rejected(client, completion):
    completion("unused")
    assert client.post("/api/chat", json={"messages": []}).status_code == 400
    assert client.post("/api/chat", json={"messages": [{"role": "system", "content": "x"}]}).status_code == 400


def test_unconfigured_assistant_is_503(client, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    resp = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})
    assert resp.status_code == 503


def test_upstream_failure_is_500(client, completion):
    completion(status=429)
    resp = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})
    assert resp.status_code == 500
    assert resp.json()["error"] == "Failed to process chat request"


def test_product_context_defaults(db, make_product):
    plain = make_product(name="Plain Cotton", price="1499.50")
    dressed = make_product(name="Festive Lehenga", price="24000", material="Georgette",
                           occasions=["Festive", "Party"], colors=[{"name": "Maroon", "hexCode": "#800000"}])

    context = build_product_context([plain, dressed])

    assert f"ID: {plain.id}\nName: Plain Cotton\nPrice: ₹1,499.50\n" in context
    assert "Material: Premium fabric\nOccasion: Any occasion\nPattern: Classic\nColors: Various\n---" in context
    assert "Price: ₹24,000" in context
    assert "Occasion: Festive, Party" in context
    assert "Colors: Maroon" in context
    assert build_product_context([]) == "No products available in the catalog at the moment."


def test_extract_recommendations_keeps_text_without_markers(db, make_product):
    message, cards = extract_recommendations("No match today.", [make_product()])
    assert message == "No match today."
    assert cards == []
