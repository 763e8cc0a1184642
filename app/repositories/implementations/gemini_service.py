import asyncio
from typing import Optional

import google.generativeai as genai
import structlog

from app.config.settings import settings
from app.core.exceptions import AIGenerationError
from app.models.schemas import GenerationOutput, GenerationSettings
from app.repositories.interfaces.ai_service import IAIService
from app.services.generation_prompt import SYSTEM_PROMPT, build_chunk_prompt, parse_candidates

logger = structlog.get_logger()


class GeminiService(IAIService):
    """Google Gemini implementation of AI service."""

    provider = "gemini"

    def __init__(self) -> None:
        self.configured = bool(settings.gemini_api_key)
        if self.configured:
            genai.configure(api_key=settings.gemini_api_key)

    def _model_name(self, generation_settings: GenerationSettings) -> str:
        # Settings default to an OpenAI model id; fall back to the configured Gemini model
        if generation_settings.model.startswith("gemini"):
            return generation_settings.model
        return settings.gemini_model

    async def generate_test_cases(
        self,
        chunk_text: str,
        generation_settings: GenerationSettings,
        *,
        doc_id: str,
        chunk_index: int,
    ) -> GenerationOutput:
        if not self.configured:
            raise AIGenerationError(self.provider, "GEMINI_API_KEY is not configured")

        model_name = self._model_name(generation_settings)

        def sync_call():
            model = genai.GenerativeModel(model_name, system_instruction=SYSTEM_PROMPT)
            prompt = build_chunk_prompt(chunk_text, generation_settings, doc_id, chunk_index)
            response = model.generate_content(
                prompt,
                generation_config=genai.types.GenerationConfig(
                    max_output_tokens=settings.ai_max_tokens,
                    temperature=generation_settings.temperature,
                    # Ask the model to return raw JSON, no prose
                    response_mime_type="application/json",
                ),
            )
            return response

        try:
            response = await asyncio.get_running_loop().run_in_executor(None, sync_call)
        except Exception as e:
            logger.error("Gemini call failed", error=str(e), doc_id=doc_id, chunk_index=chunk_index)
            raise AIGenerationError(self.provider, str(e)) from e

        try:
            # .text raises ValueError when the reply was blocked or empty
            text: Optional[str] = response.text or ""
        except ValueError as e:
            raise AIGenerationError(self.provider, f"empty or blocked response: {e}") from e
        try:
            candidates = parse_candidates(text)
        except ValueError as e:
            logger.error("Failed to parse Gemini response", error=str(e), content_preview=text[:200])
            raise AIGenerationError(self.provider, f"unparseable response: {e}") from e

        usage = {}
        metadata = getattr(response, "usage_metadata", None)
        if metadata is not None:
            usage = {
                "prompt_tokens": getattr(metadata, "prompt_token_count", 0),
                "completion_tokens": getattr(metadata, "candidates_token_count", 0),
                "total_tokens": getattr(metadata, "total_token_count", 0),
            }
        logger.info("Gemini candidates received", count=len(candidates), chunk_index=chunk_index, model=model_name)
        return GenerationOutput(candidates=candidates, usage=usage)
