"""
Error types for Maisoku Translator

Two families:
- ExtractionError: a closed taxonomy of model/provider failures. Every
  failure of ExtractionClient.extract() is one of these; raw SDK
  exceptions never reach the caller.
- SessionError: a user action refused by ListingSession before any
  extraction is attempted (nothing staged, cooldown running, ...).

Each error carries a localized, user-facing message. Provider text is
never shown verbatim except the short status detail of Unclassified errors.

Classification
--------------
classify_provider_error() reads structured status information first
(HTTP-style integer codes, RPC status names, google-api-core exception
class names) anywhere on the exception chain. Matching on message text
("429", "quota", ...) is kept only as a last resort: providers change
their wording, so that branch is a known fragility.
"""

import re
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from .models import TargetLanguage


# ============================================================
# ERROR KINDS
# ============================================================

class ErrorKind(str, Enum):
    """Closed set of extraction failure categories."""
    CONFIGURATION_MISSING = "configuration_missing"
    QUOTA_EXHAUSTED = "quota_exhausted"
    MODEL_UNAVAILABLE = "model_unavailable"
    AUTH_REJECTED = "auth_rejected"
    EMPTY_RESPONSE = "empty_response"
    MALFORMED_RESPONSE = "malformed_response"
    UNCLASSIFIED = "unclassified"


# Localized messages keyed by language code
_MESSAGES: Dict[ErrorKind, Dict[str, str]] = {
    ErrorKind.CONFIGURATION_MISSING: {
        "zh-TW": "【設定錯誤】找不到 API 金鑰。請在環境變數或 .env 檔中設定 GEMINI_API_KEY 後重新啟動。",
        "zh-CN": "【设置错误】找不到 API 密钥。请在环境变量或 .env 文件中设置 GEMINI_API_KEY 后重新启动。",
        "en": "Configuration error: no API key found. Set GEMINI_API_KEY in the environment or .env file and restart.",
    },
    ErrorKind.QUOTA_EXHAUSTED: {
        "zh-TW": "【額度已滿】API 每分鐘僅支援少量圖片辨識。請等待 {cooldown} 秒後再試一次。",
        "zh-CN": "【额度已满】API 每分钟仅支持少量图片识别。请等待 {cooldown} 秒后再试一次。",
        "en": "Quota exhausted: the API only allows a few image requests per minute. Please wait {cooldown} seconds and try again.",
    },
    ErrorKind.MODEL_UNAVAILABLE: {
        "zh-TW": "【模型錯誤】找不到設定的 AI 模型。請聯絡管理員確認模型名稱與 API 金鑰權限。",
        "zh-CN": "【模型错误】找不到设置的 AI 模型。请联系管理员确认模型名称与 API 密钥权限。",
        "en": "Model error: the configured AI model is unavailable. Ask the operator to check the model name and API key access.",
    },
    ErrorKind.AUTH_REJECTED: {
        "zh-TW": "【金鑰錯誤】API 金鑰無效或未授權。請聯絡管理員更新金鑰。",
        "zh-CN": "【密钥错误】API 密钥无效或未授权。请联系管理员更新密钥。",
        "en": "Authentication error: the API key was rejected. Ask the operator to update the key.",
    },
    ErrorKind.EMPTY_RESPONSE: {
        "zh-TW": "AI 回傳了空的結果。圖片可能太模糊，請上傳更清晰的傳單後再試。",
        "zh-CN": "AI 返回了空的结果。图片可能太模糊，请上传更清晰的传单后再试。",
        "en": "The AI returned an empty result. The image may be too blurry; please retry with a clearer flyer.",
    },
    ErrorKind.MALFORMED_RESPONSE: {
        "zh-TW": "AI 回傳的資料格式不正確。這通常是暫時性的，請再試一次。",
        "zh-CN": "AI 返回的数据格式不正确。这通常是暂时性的，请再试一次。",
        "en": "The AI response could not be read. This is usually temporary; please try again.",
    },
    ErrorKind.UNCLASSIFIED: {
        "zh-TW": "分析失敗 ({detail})。請稍後再試。",
        "zh-CN": "分析失败 ({detail})。请稍后再试。",
        "en": "Analysis failed ({detail}). Please try again later.",
    },
}

_BAD_REQUEST_HINT = {
    "zh-TW": "圖片數據過大或格式不正確，請嘗試截圖較小的區域上傳。",
    "zh-CN": "图片数据过大或格式不正确，请尝试截图较小的区域上传。",
    "en": "The image may be too large or in an unsupported format; try uploading a smaller crop.",
}


def _localize(table: Dict[str, str], language: Optional[TargetLanguage]) -> str:
    code = language.code if language is not None else "en"
    return table.get(code, table["en"])


# ============================================================
# EXTRACTION ERRORS
# ============================================================

class ExtractionError(Exception):
    """Base class for classified extraction failures."""

    kind: ErrorKind = ErrorKind.UNCLASSIFIED
    is_retryable: bool = True
    requires_operator: bool = False

    def __init__(self, message: str = "", detail: str = ""):
        self.detail = detail
        super().__init__(message or self.kind.value)

    def user_message(self, language: Optional[TargetLanguage] = None) -> str:
        """Human-readable message in the user's language."""
        return _localize(_MESSAGES[self.kind], language).format(detail=self.detail or "-")


class ConfigurationMissingError(ExtractionError):
    """No API credential configured."""
    kind = ErrorKind.CONFIGURATION_MISSING
    is_retryable = False
    requires_operator = True


class QuotaExhaustedError(ExtractionError):
    """Provider signalled rate or quota limiting."""
    kind = ErrorKind.QUOTA_EXHAUSTED

    def __init__(self, message: str = "", detail: str = "", cooldown_seconds: int = 120):
        self.cooldown_seconds = cooldown_seconds
        super().__init__(message, detail)

    def user_message(self, language: Optional[TargetLanguage] = None) -> str:
        return _localize(_MESSAGES[self.kind], language).format(cooldown=self.cooldown_seconds)


class ModelUnavailableError(ExtractionError):
    """Configured model identifier is invalid or not served."""
    kind = ErrorKind.MODEL_UNAVAILABLE
    is_retryable = False
    requires_operator = True


class AuthRejectedError(ExtractionError):
    """Provider rejected the credential."""
    kind = ErrorKind.AUTH_REJECTED
    is_retryable = False
    requires_operator = True


class EmptyResponseError(ExtractionError):
    """Provider answered with no usable content."""
    kind = ErrorKind.EMPTY_RESPONSE


class MalformedResponseError(ExtractionError):
    """Provider content could not be parsed into a ListingRecord."""
    kind = ErrorKind.MALFORMED_RESPONSE


class UnclassifiedProviderError(ExtractionError):
    """Any other provider or transport failure."""
    kind = ErrorKind.UNCLASSIFIED

    def __init__(self, message: str = "", detail: str = "", status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, detail)

    def user_message(self, language: Optional[TargetLanguage] = None) -> str:
        text = super().user_message(language)
        if self.status_code == 400:
            text = f"{text} {_localize(_BAD_REQUEST_HINT, language)}"
        return text


# ============================================================
# SESSION ERRORS
# ============================================================

class SessionError(Exception):
    """A user action refused before extraction was attempted."""

    _messages: Dict[str, str] = {}

    def user_message(self, language: Optional[TargetLanguage] = None) -> str:
        return _localize(self._messages, language).format(**self.__dict__)


class NoSourceStagedError(SessionError):
    _messages = {
        "zh-TW": "請先上傳房產傳單。",
        "zh-CN": "请先上传房产传单。",
        "en": "Upload a property flyer first.",
    }


class CooldownActiveError(SessionError):
    _messages = {
        "zh-TW": "API 額度冷卻中，請於 {remaining} 秒後再試。",
        "zh-CN": "API 额度冷却中，请于 {remaining} 秒后再试。",
        "en": "API quota cooldown active; try again in {remaining} seconds.",
    }

    def __init__(self, remaining: int):
        self.remaining = remaining
        super().__init__(f"Cooldown active: {remaining}s remaining")


class ConversionInProgressError(SessionError):
    _messages = {
        "zh-TW": "轉換進行中，請稍候。",
        "zh-CN": "转换进行中，请稍候。",
        "en": "A conversion is already running; please wait.",
    }


class UnsupportedDocumentError(SessionError):
    _messages = {
        "zh-TW": "不支援的檔案：{reason}",
        "zh-CN": "不支持的文件：{reason}",
        "en": "Unsupported file: {reason}",
    }

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


# ============================================================
# PROVIDER ERROR CLASSIFICATION
# ============================================================

_QUOTA_STATUSES = {"RESOURCE_EXHAUSTED", "TOO_MANY_REQUESTS"}
_NOT_FOUND_STATUSES = {"NOT_FOUND"}
_AUTH_STATUSES = {"UNAUTHENTICATED", "PERMISSION_DENIED", "UNAUTHORIZED", "FORBIDDEN"}

# google.api_core.exceptions class names
_QUOTA_CLASSES = {"ResourceExhausted", "TooManyRequests"}
_NOT_FOUND_CLASSES = {"NotFound"}
_AUTH_CLASSES = {"Unauthenticated", "PermissionDenied", "Unauthorized", "Forbidden"}

_INVALID_KEY_PATTERN = re.compile(r"api[_ ]?key (not valid|invalid|expired)|API_KEY_INVALID", re.IGNORECASE)
_QUOTA_PATTERN = re.compile(r"\b429\b|quota|rate.?limit|resource.?exhausted|too many requests", re.IGNORECASE)
_NOT_FOUND_PATTERN = re.compile(r"\b404\b|not found|is not supported for generateContent", re.IGNORECASE)
_AUTH_PATTERN = re.compile(r"\b40[13]\b|unauthori[sz]ed|permission denied|unauthenticated", re.IGNORECASE)


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield exc and its causes/contexts, each once."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _status_code(exc: BaseException) -> Optional[int]:
    for attr in ("code", "status_code"):
        value: Any = getattr(exc, attr, None)
        if callable(value):
            # grpc errors expose code() returning a StatusCode enum
            continue
        if isinstance(value, int):
            return int(value)
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def _status_name(exc: BaseException) -> str:
    for attr in ("status", "reason"):
        value = getattr(exc, attr, None)
        if isinstance(value, str):
            return value.upper()
        name = getattr(value, "name", None)
        if isinstance(name, str):
            return name.upper()
    grpc_code = getattr(exc, "grpc_status_code", None)
    name = getattr(grpc_code, "name", None)
    return name.upper() if isinstance(name, str) else ""


def _short_detail(exc: BaseException, status_code: Optional[int]) -> str:
    name = type(exc).__name__
    return f"{name} {status_code}" if status_code else name


def classify_provider_error(exc: BaseException, cooldown_seconds: int = 120) -> ExtractionError:
    """
    Map an arbitrary provider/transport exception to an ExtractionError.

    Order of evidence:
      1. Already classified -> returned unchanged
      2. Structured status on any exception in the chain
         (integer code, RPC status name, exception class name)
      3. Message text of the whole chain (last resort)
      4. UnclassifiedProviderError
    """
    if isinstance(exc, ExtractionError):
        return exc

    chain = list(_exception_chain(exc))
    message = " | ".join(str(item) for item in chain)
    first_code: Optional[int] = None

    for item in chain:
        code = _status_code(item)
        status = _status_name(item)
        class_name = type(item).__name__
        if first_code is None and code is not None:
            first_code = code

        if code == 429 or status in _QUOTA_STATUSES or class_name in _QUOTA_CLASSES:
            return QuotaExhaustedError(str(exc), detail=status or "429", cooldown_seconds=cooldown_seconds)
        if code in (401, 403) or status in _AUTH_STATUSES or class_name in _AUTH_CLASSES:
            return AuthRejectedError(str(exc), detail=status or str(code or class_name))
        if code == 404 or status in _NOT_FOUND_STATUSES or class_name in _NOT_FOUND_CLASSES:
            return ModelUnavailableError(str(exc), detail=status or "404")
        if code == 400 and _INVALID_KEY_PATTERN.search(message):
            # Gemini reports a bad key as 400 INVALID_ARGUMENT
            return AuthRejectedError(str(exc), detail="API_KEY_INVALID")

    if first_code is None:
        if _INVALID_KEY_PATTERN.search(message):
            return AuthRejectedError(str(exc), detail="API_KEY_INVALID")
        if _QUOTA_PATTERN.search(message):
            return QuotaExhaustedError(str(exc), detail="quota", cooldown_seconds=cooldown_seconds)
        if _AUTH_PATTERN.search(message):
            return AuthRejectedError(str(exc), detail="auth")
        if _NOT_FOUND_PATTERN.search(message):
            return ModelUnavailableError(str(exc), detail="not found")
        if re.search(r"\b400\b", message):
            first_code = 400

    return UnclassifiedProviderError(
        str(exc),
        detail=_short_detail(exc, first_code),
        status_code=first_code,
    )
