"""
Instruction prompt and response schema for flyer extraction.

The prompt and the schema describe the same contract: one JSON object whose
keys are exactly the ListingRecord wire names.
"""

from typing import Any, Dict

from ..models import LISTING_FIELDS, REQUIRED_WIRE_KEYS, TargetLanguage

# Wire key -> meaning, as shown to the model
FIELD_DESCRIPTIONS: Dict[str, str] = {
    "propertyName": "building or property name (物件名)",
    "price": "asking price in full yen, e.g. ¥45,000,000 (価格)",
    "location": "address or area (所在地)",
    "access": "nearest stations and walking/transit time (交通)",
    "layout": "floor plan code such as 2LDK (間取り)",
    "size": "floor area with unit, e.g. 65.20m2 (専有面積/建物面積/土地面積)",
    "builtYear": "construction date or year (築年月)",
    "floor": "floor of the unit and/or total floors (所在階/階建)",
    "managementFee": "monthly management fee (管理費)",
    "repairFund": "monthly repair reserve fund (修繕積立金)",
    "coverageRatio": "building coverage ratio (建ぺい率)",
    "floorAreaRatio": "floor-area ratio (容積率)",
    "restrictions": "zoning, land use district and other legal restrictions (用途地域/法令上の制限)",
    "facilities": "equipment and facilities, comma separated (設備)",
    "description": "two to four sentence summary of the property's appeal (備考/セールスポイント)",
    "features": "array of short selling points, at most 6 words each (特徴)",
}

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        **{wire: {"type": "string"} for wire in LISTING_FIELDS.values()},
        "features": {"type": "array", "items": {"type": "string"}},
    },
    "required": list(REQUIRED_WIRE_KEYS),
}


def build_extraction_prompt(target_language: TargetLanguage) -> str:
    """
    Build the instruction text sent next to the flyer image.

    Args:
        target_language: Language every output value must be written in

    Returns:
        Prompt string
    """
    language = target_language.value
    field_lines = "\n".join(
        f'  "{wire}": {description}'
        for wire, description in FIELD_DESCRIPTIONS.items()
    )
    required = ", ".join(REQUIRED_WIRE_KEYS)

    return (
        "You are reading a Japanese real estate flyer (maisoku / 販売図面).\n"
        f"Extract the property details and translate every value into {language}.\n"
        "\n"
        "Rules:\n"
        f"- Every value must be written in {language}. Do not leave any Japanese kana "
        "or Japanese-only kanji in the output; translate or transliterate names and addresses.\n"
        "- Keep digits and the symbols ¥, m2 and % as printed. Rewrite Japanese counting "
        f"units and unit words in {language}: give prices in full yen such as ¥45,000,000, "
        "never in man-yen.\n"
        "- If the flyer does not state a field, return an empty string for it "
        "(an empty array for features). Never invent values.\n"
        f"- {required} must always be filled.\n"
        "- Return ONLY one raw JSON object: no Markdown, no code fences, no prose.\n"
        "\n"
        "The JSON object must have exactly these keys:\n"
        f"{field_lines}\n"
    )
