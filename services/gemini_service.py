"""
Gemini AI Integration Service

Turns a high-level goal into a short list of actionable tasks, and suggests
a priority plus a cleaner description for a single task. Both calls use
JSON-constrained output.

The two calls fail differently:
- generate_subtasks degrades to [] only when no API key is configured or
  the model returns nothing. Transport and parsing failures are raised as
  SuggestionServiceUnavailable so the caller can report them.
- analyze_task never raises. Any failure yields MEDIUM priority and the
  description unchanged.
"""

import asyncio
import json
import logging
from typing import Optional

from google import genai
from google.genai import types
from pydantic import TypeAdapter, ValidationError

from config.settings import settings
from config.logging_utils import log_debug, log_success, log_error
from models.task import SubtaskSuggestion, TaskAnalysis, TaskPriority
from services.errors import SuggestionServiceUnavailable

logger = logging.getLogger(__name__)


_PRIORITY_SCHEMA = types.Schema(
    type=types.Type.STRING,
    enum=[TaskPriority.HIGH.value, TaskPriority.MEDIUM.value, TaskPriority.LOW.value]
)

SUBTASKS_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "title": types.Schema(type=types.Type.STRING, description="Short title of the task"),
            "description": types.Schema(type=types.Type.STRING, description="Detailed description"),
            "priority": _PRIORITY_SCHEMA,
        },
        required=["title", "description", "priority"]
    )
)

ANALYSIS_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "priority": _PRIORITY_SCHEMA,
        "refined_description": types.Schema(type=types.Type.STRING),
    },
    required=["priority", "refined_description"]
)

_suggestions_adapter = TypeAdapter(list[SubtaskSuggestion])


class GeminiService:
    """Stateless adapter between task flows and the Gemini model."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        client: Optional[genai.Client] = None
    ):
        self._api_key = settings.GEMINI_API_KEY if api_key is None else api_key
        self._model_name = model_name or settings.GEMINI_MODEL_NAME
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def _sync_generate_content(self, prompt: str, schema: types.Schema, temperature: float):
        """Synchronous generate_content call, run in a worker thread."""
        return self._get_client().models.generate_content(
            model=self._model_name,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=schema,
                temperature=temperature,
            )
        )

    async def _generate_json_text(self, prompt: str, schema: types.Schema, temperature: float = 0.4) -> str:
        response = await asyncio.to_thread(self._sync_generate_content, prompt, schema, temperature)
        return response.text or ""

    def _build_subtasks_prompt(self, goal: str) -> str:
        return (
            "Break down the following goal into 3-5 specific, actionable tasks "
            f'for a project management dashboard. Goal: "{goal.strip()}"'
        )

    def _build_analysis_prompt(self, description: str) -> str:
        return (
            "Analyze this task description. Suggest a priority level and a more "
            f'professional, concise description. Description: "{description.strip()}"'
        )

    async def generate_subtasks(self, goal: str) -> list[SubtaskSuggestion]:
        """
        Break a goal down into suggested tasks.

        Args:
            goal: Free-text goal

        Returns:
            Suggestions in the order the model produced them; empty when no
            API key is configured or the model returned no content

        Raises:
            SuggestionServiceUnavailable: transport, parsing or schema failure
        """
        if not self.is_configured:
            logger.warning("No GEMINI_API_KEY configured, skipping subtask generation")
            return []

        log_debug(f"Generating subtasks for goal: {goal[:80]}", prefix="GEMINI")
        try:
            text = await self._generate_json_text(self._build_subtasks_prompt(goal), SUBTASKS_SCHEMA)
        except Exception as e:
            log_error(f"Subtask generation failed: {e}", prefix="GEMINI")
            raise SuggestionServiceUnavailable(f"Subtask generation failed: {e}") from e

        if not text.strip():
            return []

        try:
            suggestions = _suggestions_adapter.validate_python(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            log_error(f"Unparsable subtask response: {e}", prefix="GEMINI")
            raise SuggestionServiceUnavailable(f"Failed to parse Gemini response: {e}") from e

        log_success(f"Generated {len(suggestions)} subtask suggestions", prefix="GEMINI")
        return suggestions

    async def analyze_task(self, description: str) -> TaskAnalysis:
        """Suggest a priority and refined description, falling back silently."""
        fallback = TaskAnalysis(priority=TaskPriority.MEDIUM, refined_description=description)
        if not self.is_configured:
            return fallback

        try:
            text = await self._generate_json_text(
                self._build_analysis_prompt(description), ANALYSIS_SCHEMA, temperature=0.2
            )
            if not text.strip():
                raise SuggestionServiceUnavailable("Empty response from Gemini API")
            return TaskAnalysis.model_validate_json(text)
        except Exception as e:
            logger.error(f"Gemini analysis error, using fallback: {e}")
            return fallback

    def close(self):
        """Release the underlying client."""
        self._client = None


gemini_service = GeminiService()
