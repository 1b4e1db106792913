"""
Extraction Client

Sends a flyer image to Gemini and turns the answer into a ListingRecord:
- Multimodal request (inline image + instruction prompt)
- Low temperature, JSON response mode, optional response schema
- In-memory cache keyed by image content and target language
- Every failure classified into an ExtractionError kind
"""

import base64
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from pydantic import ValidationError

from ..config_loader import config
from ..errors import (
    ConfigurationMissingError,
    EmptyResponseError,
    MalformedResponseError,
    classify_provider_error,
)
from ..models import ExtractionRequest, ListingRecord, TargetLanguage
from .cache import ExtractionCache
from .prompts import RESPONSE_SCHEMA, build_extraction_prompt

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class ExtractionClient:
    """
    Gemini-backed flyer extraction.

    The chat model is created lazily on the first cache miss, so a missing
    API key is reported as ConfigurationMissingError by extract() rather
    than blowing up at construction time.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        api_key: Optional[str] = None,
        cache: Optional[ExtractionCache] = None,
        llm: Optional[BaseChatModel] = None,
        use_response_schema: Optional[bool] = None,
    ):
        """
        Initialize extraction client.

        Args:
            model: Gemini model name. Defaults to config.
            temperature: Sampling temperature. Defaults to config (0.1).
            max_tokens: Max output tokens. Defaults to config.
            api_key: API key. Defaults to the env var named in config.
            cache: Cache instance to use. A private one is created if omitted.
            llm: Pre-built chat model (tests inject a mock here)
            use_response_schema: Send the JSON schema with the request. Defaults to config.
        """
        self.model = model or config.get('extraction.model', 'gemini-1.5-flash')
        self.temperature = temperature if temperature is not None else config.get('extraction.temperature', 0.1)
        self.max_tokens = max_tokens or config.get('extraction.max_output_tokens', 2048)
        self.timeout = config.get('extraction.timeout')
        self.cooldown_seconds = int(config.get('extraction.cooldown_seconds', 120))
        self.use_response_schema = (
            use_response_schema if use_response_schema is not None
            else config.get('extraction.use_response_schema', True)
        )

        api_key_env = config.get('extraction.api_key_env', 'GEMINI_API_KEY')
        self.api_key = api_key if api_key is not None else os.getenv(api_key_env)
        if not self.api_key:
            logger.warning(f"API key not found in environment variable: {api_key_env}")

        self.cache = cache if cache is not None else ExtractionCache()
        self._llm = llm

        # Token tracking
        self.total_input_tokens = 0
        self.total_output_tokens = 0
        self.provider_calls = 0

        logger.info(
            f"Extraction client initialized: {self.model} "
            f"(temp={self.temperature}, max_tokens={self.max_tokens}, schema={self.use_response_schema})"
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    @property
    def llm(self) -> BaseChatModel:
        if self._llm is None:
            self._llm = self._create_llm()
        return self._llm

    def _create_llm(self) -> ChatGoogleGenerativeAI:
        """Create Google Gemini chat model configured for JSON output."""
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "google_api_key": self.api_key,
            "temperature": self.temperature,
            "max_output_tokens": self.max_tokens,
            "response_mime_type": "application/json",
            "max_retries": 0,  # quota errors go to the cooldown gate instead
        }
        if self.use_response_schema:
            kwargs["response_schema"] = RESPONSE_SCHEMA
        if self.timeout:
            kwargs["timeout"] = float(self.timeout)
        return ChatGoogleGenerativeAI(**kwargs)

    def extract(
        self,
        image_bytes: bytes,
        mime_type: str,
        target_language: TargetLanguage
    ) -> ListingRecord:
        """
        Extract and translate the listing shown on a flyer image.

        Args:
            image_bytes: Raw bytes of a single still image
            mime_type: Image mime type, e.g. 'image/jpeg'
            target_language: Output language for every field

        Returns:
            ListingRecord with every field present

        Raises:
            ExtractionError: One of the classified kinds; nothing else escapes
        """
        if not self.has_credentials:
            raise ConfigurationMissingError("No API key configured")

        key = self.cache.make_key(image_bytes, target_language)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Cache hit for {target_language.code} extraction ({len(image_bytes)} bytes)")
            return cached

        message = self._build_message(image_bytes, mime_type, target_language)

        try:
            logger.info(f"Requesting extraction from {self.model} ({target_language.code}, {mime_type}, {len(image_bytes)} bytes)")
            self.provider_calls += 1
            response = self.llm.invoke([message])
        except Exception as e:
            error = classify_provider_error(e, cooldown_seconds=self.cooldown_seconds)
            logger.error(f"Gemini call failed [{error.kind.value}]: {e}", exc_info=True)
            raise error from e

        self._track_usage(response)
        record = self.parse_response(_response_text(response))

        record = self.cache.put_if_absent(key, record)
        logger.info(f"Extracted listing '{record.property_name}' ({len(record.features)} feature(s))")
        return record

    def extract_request(self, request: ExtractionRequest) -> ListingRecord:
        """Convenience wrapper taking an ExtractionRequest."""
        return self.extract(request.image_bytes, request.mime_type, request.target_language)

    def _build_message(
        self,
        image_bytes: bytes,
        mime_type: str,
        target_language: TargetLanguage
    ) -> HumanMessage:
        """
        Build the multimodal user message.

        Content parts: inline image as a base64 data URL, then the instruction text.
        """
        encoded = base64.b64encode(image_bytes).decode("ascii")
        return HumanMessage(content=[
            {"type": "image_url", "image_url": f"data:{mime_type};base64,{encoded}"},
            {"type": "text", "text": build_extraction_prompt(target_language)},
        ])

    @staticmethod
    def parse_response(text: str) -> ListingRecord:
        """
        Parse the model's text payload into a ListingRecord.

        A single surrounding Markdown code fence is tolerated; JSON wrapped
        in prose is not.

        Raises:
            EmptyResponseError: Payload is blank
            MalformedResponseError: Not a JSON object, or required keys missing
        """
        if not text or not text.strip():
            raise EmptyResponseError("Model returned an empty payload")

        payload = text.strip()
        fenced = _CODE_FENCE.match(payload)
        if fenced:
            payload = fenced.group(1)

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Response is not valid JSON: {e} (first 80 chars: {payload[:80]!r})")
            raise MalformedResponseError(f"Invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected a JSON object, got {type(data).__name__}")

        try:
            return ListingRecord.model_validate(data)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            logger.warning(f"Response failed validation: {fields}")
            raise MalformedResponseError(f"Response failed validation: {fields}") from e

    def _track_usage(self, response: Any) -> None:
        usage = getattr(response, 'usage_metadata', None)
        if usage:
            self.total_input_tokens += usage.get('input_tokens', 0)
            self.total_output_tokens += usage.get('output_tokens', 0)

    def get_token_usage(self) -> Dict[str, int]:
        """
        Get cumulative token usage.

        Returns:
            Dict with input_tokens, output_tokens, total_tokens
        """
        return {
            "input_tokens": self.total_input_tokens,
            "output_tokens": self.total_output_tokens,
            "total_tokens": self.total_input_tokens + self.total_output_tokens
        }

    def __repr__(self) -> str:
        return (
            f"ExtractionClient(model={self.model}, temp={self.temperature}, "
            f"cached={len(self.cache)})"
        )


def _response_text(response: Any) -> str:
    """Pull the text out of an AIMessage whose content may be a string or a list of parts."""
    content = response.content if isinstance(response, AIMessage) else getattr(response, "content", response)
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content)


