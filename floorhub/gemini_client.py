from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from pydantic import BaseModel, ValidationError

# Only high-probability harms are blocked for catalog and support answers.
SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_ONLY_HIGH,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
}

from .config import Settings
from .utils import safe_json_loads

logger = logging.getLogger("floorhub.llm")

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class LLMError(RuntimeError):
    """The model call failed (network, quota, blocked response)."""


class LLMSchemaError(LLMError):
    """The model answered in JSON mode but the output does not match the schema."""


class GeminiClient:
    """Thin wrapper around Gemini SDK with model caching, safety settings, and JSON mode."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK and initialize model cache.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures SDK global API key and caches model instances.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises ValueError if API key or model name is missing.
        If Removed: Ranking, grounded answers, and clarifications cannot call the LLM.
        Testing Notes: Validate missing key raises ValueError and models are cached.
        """
        # Configure API key and seed default model cache.
        self._settings = settings
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        genai.configure(api_key=settings.gemini_api_key)
        self._default_model = _normalize_model_name(settings.gemini_model)
        if not self._default_model:
            raise ValueError("Gemini model name is required")
        self._models: Dict[tuple, genai.GenerativeModel] = {}

    def _model(self, system_instruction: Optional[str]) -> genai.GenerativeModel:
        # System instructions are bound at model construction, so cache per instruction.
        key = (self._default_model, system_instruction or "")
        if key not in self._models:
            if system_instruction:
                self._models[key] = genai.GenerativeModel(
                    self._default_model, system_instruction=system_instruction
                )
            else:
                self._models[key] = genai.GenerativeModel(self._default_model)
        return self._models[key]

    def generate_text(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.2,
        max_output_tokens: int = 4096,
    ) -> str:
        """Purpose: Generate a free-text response from a string prompt.
        Inputs/Outputs: Input is prompt string and optional system instruction; returns text.
        Side Effects / State: May add a model to the internal cache.
        Dependencies: Uses genai.GenerativeModel.generate_content.
        Failure Modes: SDK failures are re-raised as LLMError.
        If Removed: Grounded answers and clarification questions cannot be produced.
        Testing Notes: Ensure non-empty output for a valid prompt.
        """
        # Call the model and surface SDK errors as LLMError.
        try:
            response = self._model(system_instruction).generate_content(
                prompt,
                generation_config={
                    "temperature": temperature,
                    "max_output_tokens": max_output_tokens,
                },
                safety_settings=SAFETY_SETTINGS,
            )
            text: Optional[str] = getattr(response, "text", None)
        except Exception as exc:
            logger.warning("model=%s text call failed: %s", self._default_model, exc)
            raise LLMError(str(exc)) from exc
        return (text or "").strip()

    def generate_json(self, prompt: str, schema_model: Type[SchemaT], temperature: float = 0.0) -> SchemaT:
        """Purpose: Generate a JSON response constrained to and validated by a pydantic model.
        Inputs/Outputs: Inputs are prompt and schema model class; output is a validated instance.
        Side Effects / State: May add a model to the internal cache.
        Dependencies: Uses Gemini JSON mode (response_schema), safe_json_loads, and pydantic.
        Failure Modes: SDK failures raise LLMError; unparseable or mismatching output raises
            LLMSchemaError instead of returning malformed data.
        If Removed: The relevance ranking call has no strict-schema mode.
        Testing Notes: Feed a stub response with a wrong field type and expect LLMSchemaError.
        """
        # Request JSON mode with the model's schema, then validate locally.
        try:
            response = self._model(None).generate_content(
                prompt,
                generation_config={
                    "temperature": temperature,
                    "response_mime_type": "application/json",
                    "response_schema": response_schema(schema_model),
                },
                safety_settings=SAFETY_SETTINGS,
            )
            text: Optional[str] = getattr(response, "text", None)
        except Exception as exc:
            logger.warning("model=%s json call failed: %s", self._default_model, exc)
            raise LLMError(str(exc)) from exc
        return validate_json_output(text or "", schema_model)


def validate_json_output(text: str, schema_model: Type[SchemaT]) -> SchemaT:
    """Parse model text as a JSON object and validate it against schema_model."""
    data = safe_json_loads(text)
    if data is None:
        raise LLMSchemaError(f"model output is not a JSON object: {text[:200]!r}")
    try:
        return schema_model.model_validate(data)
    except ValidationError as exc:
        raise LLMSchemaError(str(exc)) from exc


def response_schema(schema_model: Type[BaseModel]) -> Dict[str, Any]:
    """Purpose: Reduce a pydantic JSON schema to the OpenAPI subset Gemini accepts.
    Inputs/Outputs: Input is a pydantic model class; output is a schema dict.
    Side Effects / State: None.
    Dependencies: Uses BaseModel.model_json_schema.
    Failure Modes: Nested $ref schemas are not resolved; keep schema models flat.
    If Removed: JSON mode requests are sent without a schema and drift in shape.
    Testing Notes: RelevanceResult should map to an object with an array of strings.
    """
    # Keep only the keywords Gemini understands.
    return _strip_schema(schema_model.model_json_schema())


def _strip_schema(node: Any) -> Any:
    allowed = {"type", "properties", "items", "required", "description", "enum"}
    if isinstance(node, dict):
        cleaned = {}
        for key, value in node.items():
            if key not in allowed:
                continue
            if key == "properties":
                cleaned[key] = {name: _strip_schema(child) for name, child in value.items()}
            else:
                cleaned[key] = _strip_schema(value)
        return cleaned
    if isinstance(node, list):
        return [_strip_schema(child) for child in node]
    return node


def _normalize_model_name(name: Optional[str]) -> str:
    """Strip whitespace and the "models/" prefix; falsy input gives an empty string."""
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
