"""
Chat Module - Shopping Assistant
=================================
Builds a catalog context from active products, asks the completion API
for a reply, and resolves the [PRODUCT:id] markers it returns into
product cards.
"""

import re
import httpx
import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session, joinedload

from config import settings
from common.exceptions import GatewayError, ServiceUnavailableError, ValidationError
from common.helpers import money
from modules.catalog.models import Product

logger = logging.getLogger("saakie.chat")

CATALOG_LIMIT = 30
PRODUCT_MARKER = re.compile(r"\[PRODUCT:([^\]]+)\]")
ALLOWED_ROLES = ("user", "assistant")

SYSTEM_PROMPT = """You are a helpful fashion assistant for Saakie, a premium saree and fashion e-commerce store in India.

Your role is to:
1. Help customers find the perfect saree based on their preferences
2. Ask clarifying questions about occasion (wedding, party, casual, festive), budget, preferred colors, material, and style
3. Provide personalized product recommendations from the available catalog
4. Answer questions about saree styling tips and fashion advice

Guidelines:
- Be warm, friendly, and conversational
- When recommending products, reference them by their exact names from the catalog
- Include product IDs in format [PRODUCT:id] so the system can show product cards
- If the user's requirements don't match any products, suggest alternatives
- Always recommend 1-3 products at most per response
- Ask follow-up questions to narrow down preferences
- Mention price in Indian Rupees (₹)

Available product attributes you can filter by: occasion, color, material, pattern, fabric, workType, price range."""


def _format_inr(value) -> str:
    amount = money(value)
    return f"{int(amount):,}" if amount == int(amount) else f"{amount:,.2f}"


def _color_names(product: Product) -> List[str]:
    return [c.get("name") if isinstance(c, dict) else str(c) for c in product.colors if c]


def build_product_context(products: List[Product]) -> str:
    if not products:
        return "No products available in the catalog at the moment."

    blocks = []
    for p in products:
        blocks.append(
            f"ID: {p.id}\n"
            f"Name: {p.name}\n"
            f"Price: ₹{_format_inr(p.price)}\n"
            f"Category: {p.category.name if p.category else 'Fashion'}\n"
            f"Material: {p.material or 'Premium fabric'}\n"
            f"Occasion: {', '.join(p.occasions) or 'Any occasion'}\n"
            f"Pattern: {p.pattern or 'Classic'}\n"
            f"Colors: {', '.join(_color_names(p)) or 'Various'}\n"
            f"---"
        )
    return "\n".join(blocks)


def extract_recommendations(message: str, products: List[Product]) -> Tuple[str, List[Dict[str, Any]]]:
    """Return (message without markers, product cards for known ids in mention order)."""
    by_id = {str(p.id): p for p in products}
    cards, seen = [], set()
    for raw_id in PRODUCT_MARKER.findall(message):
        key = raw_id.strip()
        product = by_id.get(key)
        if product is None or key in seen:
            continue
        seen.add(key)
        image = product.primary_image
        cards.append({
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
            "price": money(product.price),
            "image": image.url if image else "",
            "category": product.category.name if product.category else "Fashion",
        })
    return PRODUCT_MARKER.sub("", message).strip(), cards


class ChatService:

    def load_catalog(self, db: Session) -> List[Product]:
        return (
            db.query(Product)
            .options(joinedload(Product.category))
            .filter(Product.is_active == True)
            .order_by(Product.is_featured.desc(), Product.created_at.desc(), Product.id.desc())
            .limit(CATALOG_LIMIT)
            .all()
        )

    def _clean_messages(self, messages) -> List[Dict[str, str]]:
        if not isinstance(messages, list) or not messages:
            raise ValidationError("messages must be a non-empty list")
        cleaned = []
        for m in messages:
            if not isinstance(m, dict) or m.get("role") not in ALLOWED_ROLES:
                raise ValidationError("Each message needs a role of 'user' or 'assistant'")
            cleaned.append({"role": m["role"], "content": str(m.get("content") or "")})
        return cleaned

    def _complete(self, messages: List[Dict[str, str]]) -> str:
        url = settings.OPENAI_API_BASE.rstrip("/") + "/chat/completions"
        body = {
            "model": settings.OPENAI_MODEL,
            "messages": messages,
            "temperature": 0.7,
            "max_tokens": 500,
        }
        try:
            resp = httpx.post(
                url, json=body,
                headers={"Authorization": f"Bearer {settings.OPENAI_API_KEY}"},
                timeout=settings.CHAT_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError as e:
            logger.error(f"Completion request failed: {e}")
            raise GatewayError("Failed to process chat request")

        if resp.status_code != 200:
            logger.error(f"Completion API returned HTTP {resp.status_code}")
            raise GatewayError("Failed to process chat request")

        try:
            return resp.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError):
            logger.error("Completion API returned an unexpected payload")
            raise GatewayError("Failed to process chat request")

    def reply(self, db: Session, messages) -> Dict[str, Any]:
        if not settings.OPENAI_API_KEY:
            raise ServiceUnavailableError("Chat assistant is not configured")

        history = self._clean_messages(messages)
        products = self.load_catalog(db)
        system = SYSTEM_PROMPT + "\n\n--- PRODUCT CATALOG ---\n" + build_product_context(products)

        content = self._complete([{"role": "system", "content": system}] + history)
        message, cards = extract_recommendations(content, products)
        logger.info(f"Chat reply with {len(cards)} product card(s)")
        return {"message": message, "products": cards}


chat_service = ChatService()
