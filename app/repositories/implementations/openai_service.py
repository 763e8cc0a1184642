import asyncio
from typing import Optional
from openai import OpenAI
import structlog
from app.core.exceptions import AIGenerationError
from app.repositories.interfaces.ai_service import IAIService
from app.models.schemas import GenerationOutput, GenerationSettings
from app.services.generation_prompt import SYSTEM_PROMPT, build_chunk_prompt, parse_candidates
from app.config.settings import settings

logger = structlog.get_logger()


class OpenAIService(IAIService):
    """OpenAI chat completions implementation of AI service"""

    provider = "openai"

    def __init__(self, client: Optional[OpenAI] = None):
        self.client = client
        if self.client is None and settings.openai_api_key:
            self.client = OpenAI(
                base_url=settings.openai_base_url,
                api_key=settings.openai_api_key,
                timeout=settings.openai_timeout_seconds,
            )

    def _model_name(self, generation_settings: GenerationSettings) -> str:
        # A Gemini model id in the settings means the caller switched providers; use the configured OpenAI model
        if generation_settings.model.startswith("gemini"):
            return settings.openai_model
        return generation_settings.model

    async def generate_test_cases(
        self,
        chunk_text: str,
        generation_settings: GenerationSettings,
        *,
        doc_id: str,
        chunk_index: int,
    ) -> GenerationOutput:
        """Generate candidate test cases for one chunk (blocking SDK call run in the default executor)"""
        if self.client is None:
            raise AIGenerationError(self.provider, "OPENAI_API_KEY is not configured")
        client = self.client
        model = self._model_name(generation_settings)

        def sync_call():
            prompt = build_chunk_prompt(chunk_text, generation_settings, doc_id, chunk_index)
            logger.info(
                "Calling OpenAI for chunk",
                model=model,
                doc_id=doc_id,
                chunk_index=chunk_index,
                prompt_preview=prompt[:200],
            )
            return client.chat.completions.create(
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                model=model,
                temperature=generation_settings.temperature,
                max_tokens=settings.ai_max_tokens,
                response_format={"type": "json_object"},
            )

        try:
            response = await asyncio.get_running_loop().run_in_executor(None, sync_call)
        except Exception as e:
            logger.error("OpenAI call failed", error=str(e), doc_id=doc_id, chunk_index=chunk_index)
            raise AIGenerationError(self.provider, str(e)) from e

        content = ""
        if getattr(response, "choices", None):
            content = response.choices[0].message.content or ""

        try:
            candidates = parse_candidates(content)
        except ValueError as e:
            logger.error("Failed to parse OpenAI response", error=str(e), content_preview=content[:200])
            raise AIGenerationError(self.provider, f"unparseable response: {e}") from e

        usage = {}
        if getattr(response, "usage", None) is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        logger.info("OpenAI candidates received", count=len(candidates), chunk_index=chunk_index, **usage)
        return GenerationOutput(candidates=candidates, usage=usage)
