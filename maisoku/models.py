"""
Maisoku Translator Data Models

Pydantic definitions for the structured listing extracted from a flyer.
Wire names follow the camelCase keys the model is asked to return.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================
# ENUMS
# ============================================================

class TargetLanguage(str, Enum):
    """Languages a flyer can be translated into. Values are used verbatim in the prompt."""
    TRADITIONAL_CHINESE = "Traditional Chinese"
    SIMPLIFIED_CHINESE = "Simplified Chinese"
    ENGLISH = "English"

    @property
    def code(self) -> str:
        return _LANGUAGE_CODES[self]

    @property
    def is_cjk(self) -> bool:
        return self in (TargetLanguage.TRADITIONAL_CHINESE, TargetLanguage.SIMPLIFIED_CHINESE)

    @classmethod
    def from_code(cls, value: str) -> "TargetLanguage":
        """
        Resolve a language from its code ('zh-TW'), name ('English') or enum member name.

        Raises:
            ValueError: If the value names no supported language
        """
        needle = value.strip().lower()
        for language in cls:
            if needle in (language.code.lower(), language.value.lower(), language.name.lower()):
                return language
        supported = ", ".join(language.code for language in cls)
        raise ValueError(f"Unsupported target language '{value}' (supported: {supported})")


_LANGUAGE_CODES = {
    TargetLanguage.TRADITIONAL_CHINESE: "zh-TW",
    TargetLanguage.SIMPLIFIED_CHINESE: "zh-CN",
    TargetLanguage.ENGLISH: "en",
}


# ============================================================
# LISTING RECORD
# ============================================================

# Field name -> wire key, in the order the prompt and schema list them
LISTING_FIELDS: Dict[str, str] = {
    "property_name": "propertyName",
    "price": "price",
    "location": "location",
    "access": "access",
    "layout": "layout",
    "size": "size",
    "built_year": "builtYear",
    "floor": "floor",
    "management_fee": "managementFee",
    "repair_fund": "repairFund",
    "coverage_ratio": "coverageRatio",
    "floor_area_ratio": "floorAreaRatio",
    "restrictions": "restrictions",
    "facilities": "facilities",
    "description": "description",
}

REQUIRED_WIRE_KEYS: Tuple[str, ...] = ("propertyName", "price", "location")


class ListingRecord(BaseModel):
    """
    Translated property details extracted from one flyer.

    Every field is always present (empty string when the flyer does not
    state it) so the renderer never has to deal with missing keys.
    Instances are frozen; a new extraction replaces the record wholesale.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    property_name: str = Field(..., alias="propertyName")
    price: str = Field(..., alias="price")
    location: str = Field(..., alias="location")
    access: str = Field(default="", alias="access")
    layout: str = Field(default="", alias="layout")
    size: str = Field(default="", alias="size")
    built_year: str = Field(default="", alias="builtYear")
    floor: str = Field(default="", alias="floor")
    management_fee: str = Field(default="", alias="managementFee")
    repair_fund: str = Field(default="", alias="repairFund")
    coverage_ratio: str = Field(default="", alias="coverageRatio")
    floor_area_ratio: str = Field(default="", alias="floorAreaRatio")
    restrictions: str = Field(default="", alias="restrictions")
    facilities: str = Field(default="", alias="facilities")
    description: str = Field(default="", alias="description")
    features: Tuple[str, ...] = Field(default=(), alias="features")

    @field_validator(*LISTING_FIELDS.keys(), mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        # Models occasionally answer with null or a bare number (e.g. builtYear: 2015)
        if value is None:
            return ""
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return ", ".join(item.strip() for item in value if item.strip())
        return value

    @field_validator("features", mode="before")
    @classmethod
    def _coerce_features(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return (value.strip(),) if value.strip() else ()
        if isinstance(value, (list, tuple)):
            return tuple(
                str(item).strip() for item in value
                if item is not None and str(item).strip()
            )
        return value

    def value_of(self, field_name: str) -> str:
        """Return a text field by its attribute name."""
        if field_name not in LISTING_FIELDS:
            raise KeyError(f"Unknown listing field: {field_name}")
        return getattr(self, field_name)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize back to the camelCase wire shape (features as a list)."""
        payload = self.model_dump(by_alias=True)
        payload["features"] = list(self.features)
        return payload


# ============================================================
# REQUEST / SOURCE
# ============================================================

@dataclass(frozen=True)
class SourceImage:
    """A staged flyer image, ready to send to the model and to place on the page."""
    data: bytes
    mime_type: str
    width: int
    height: int
    filename: str = ""
    page_count: int = 1

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 1.0


@dataclass(frozen=True)
class ExtractionRequest:
    """One extraction call: image bytes, their mime type and the target language."""
    image_bytes: bytes
    mime_type: str
    target_language: TargetLanguage

    @classmethod
    def from_source(cls, source: SourceImage, target_language: TargetLanguage) -> "ExtractionRequest":
        return cls(
            image_bytes=source.data,
            mime_type=source.mime_type,
            target_language=target_language,
        )


def wire_keys() -> List[str]:
    """All wire keys a response object must carry, features last."""
    return list(LISTING_FIELDS.values()) + ["features"]
