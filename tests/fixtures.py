"""
Shared test fixtures: flyer images, provider payloads and fake provider errors.
"""

import io
import json

from langchain_core.messages import AIMessage
from PIL import Image, ImageDraw

SORA_PAYLOAD = {
    "propertyName": "Sora Heights",
    "price": "¥45,000,000",
    "location": "Osaka",
    "access": "",
    "layout": "2LDK",
    "size": "65m2",
    "builtYear": "2015",
    "managementFee": "¥10,000",
    "repairFund": "¥5,000",
    "coverageRatio": "60%",
    "floorAreaRatio": "200%",
    "facilities": "Auto-lock",
    "floor": "5F",
    "restrictions": "",
    "features": ["South-facing", "Balcony"],
    "description": "A bright family home.",
}

FULL_PAYLOAD = {
    "propertyName": "Kyomachibori Residence",
    "price": "¥58,800,000",
    "location": "1-16-8 Kyomachibori, Nishi-ku, Osaka",
    "access": "4 min walk from Awaza Station (Chuo Line)",
    "layout": "3LDK",
    "size": "72.45m2",
    "builtYear": "March 2018",
    "floor": "8F of 14",
    "managementFee": "¥12,300/month",
    "repairFund": "¥9,800/month",
    "coverageRatio": "80%",
    "floorAreaRatio": "400%",
    "restrictions": "Commercial district, fire prevention zone",
    "facilities": "Auto-lock, delivery box, floor heating, walk-in closet",
    "description": "Corner unit with a south-east balcony and an open view over Utsubo Park.",
    "features": [
        "Corner unit",
        "South-east balcony",
        "Park view",
        "Floor heating",
        "Pet friendly",
        "Delivery box",
        "Walk-in closet",
        "Renovated 2023",
        "Two stations",
        "Concierge",
    ],
}


def make_image_bytes(image_format: str = "PNG", size=(320, 240), color=(30, 41, 59)) -> bytes:
    """A small flyer-like image: solid background with a light band."""
    img = Image.new("RGB", size, color)
    draw = ImageDraw.Draw(img)
    draw.rectangle([10, 10, size[0] - 10, 40], fill=(248, 250, 252))
    output = io.BytesIO()
    img.save(output, format=image_format)
    return output.getvalue()


def ai_message(payload) -> AIMessage:
    """Provider answer carrying a JSON payload (dict) or raw text (str)."""
    text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return AIMessage(content=text)


class FakeProviderError(Exception):
    """Stand-in for an SDK exception exposing structured status attributes."""

    def __init__(self, message: str = "provider error", code=None, status=None):
        super().__init__(message)
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status


class ResourceExhausted(Exception):
    """Named like google.api_core.exceptions.ResourceExhausted."""
