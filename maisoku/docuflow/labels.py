"""
Per-language captions for the listing document.

Every language must carry every key. The check runs at import time, so a
missing caption fails the build/test run instead of a customer's export.
"""

from typing import Dict

from ..models import LISTING_FIELDS, TargetLanguage

# Captions that are not listing fields
EXTRA_LABEL_KEYS = (
    "listing_price",
    "features",
    "tagline",
    "image_caption",
    "transaction_mode",
    "advertising",
    "tel",
    "fax",
    "email",
    "web",
    "address",
)

LABELS: Dict[TargetLanguage, Dict[str, str]] = {
    TargetLanguage.TRADITIONAL_CHINESE: {
        "property_name": "物件名稱",
        "price": "價格",
        "listing_price": "販售價格",
        "location": "所在地",
        "access": "交通",
        "layout": "格局",
        "size": "面積",
        "built_year": "建築年份",
        "floor": "樓層",
        "management_fee": "管理費",
        "repair_fund": "修繕基金",
        "coverage_ratio": "建蔽率",
        "floor_area_ratio": "容積率",
        "restrictions": "建物限制",
        "facilities": "設備",
        "description": "物件介紹",
        "features": "物件特色",
        "tagline": "精選不動產物件",
        "image_caption": "原始資料",
        "transaction_mode": "交易形態",
        "advertising": "廣告轉載",
        "tel": "電話",
        "fax": "傳真",
        "email": "信箱",
        "web": "網站",
        "address": "地址",
    },
    TargetLanguage.SIMPLIFIED_CHINESE: {
        "property_name": "物件名称",
        "price": "价格",
        "listing_price": "售价",
        "location": "所在地",
        "access": "交通",
        "layout": "户型",
        "size": "面积",
        "built_year": "建筑年份",
        "floor": "楼层",
        "management_fee": "管理费",
        "repair_fund": "修缮基金",
        "coverage_ratio": "建蔽率",
        "floor_area_ratio": "容积率",
        "restrictions": "建筑限制",
        "facilities": "设备",
        "description": "物件介绍",
        "features": "物件特色",
        "tagline": "精选不动产物件",
        "image_caption": "原始资料",
        "transaction_mode": "交易形态",
        "advertising": "广告转载",
        "tel": "电话",
        "fax": "传真",
        "email": "邮箱",
        "web": "网站",
        "address": "地址",
    },
    TargetLanguage.ENGLISH: {
        "property_name": "Property",
        "price": "Price",
        "listing_price": "Listing Price",
        "location": "Location",
        "access": "Access",
        "layout": "Layout",
        "size": "Size",
        "built_year": "Built",
        "floor": "Floor",
        "management_fee": "Management Fee",
        "repair_fund": "Repair Fund",
        "coverage_ratio": "Coverage Ratio",
        "floor_area_ratio": "Floor-Area Ratio",
        "restrictions": "Restrictions",
        "facilities": "Facilities",
        "description": "Property Description",
        "features": "Key Features",
        "tagline": "Premium Property Offering",
        "image_caption": "Original Reference",
        "transaction_mode": "Transaction",
        "advertising": "Advertising",
        "tel": "TEL",
        "fax": "FAX",
        "email": "Email",
        "web": "Web",
        "address": "Address",
    },
}


def validate_labels(labels: Dict[TargetLanguage, Dict[str, str]]) -> None:
    """
    Check that every language has a caption for every key.

    Raises:
        ValueError: Listing the missing (language, key) pairs
    """
    required = set(LISTING_FIELDS) | set(EXTRA_LABEL_KEYS)
    problems = []
    for language in TargetLanguage:
        captions = labels.get(language)
        if captions is None:
            problems.append(f"{language.code}: no label set")
            continue
        missing = sorted(key for key in required if not captions.get(key))
        if missing:
            problems.append(f"{language.code}: missing {', '.join(missing)}")
    if problems:
        raise ValueError("Incomplete label dictionaries: " + "; ".join(problems))


def labels_for(language: TargetLanguage) -> Dict[str, str]:
    return LABELS[language]


validate_labels(LABELS)
