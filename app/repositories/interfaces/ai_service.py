from abc import ABC, abstractmethod
from app.models.schemas import GenerationOutput, GenerationSettings


class IAIService(ABC):
    """Interface for AI/LLM test case generation"""

    provider: str = "unknown"
    
    @abstractmethod
    async def generate_test_cases(
        self,
        chunk_text: str,
        generation_settings: GenerationSettings,
        *,
        doc_id: str,
        chunk_index: int,
    ) -> GenerationOutput:
        """Ask the model for up to generation_settings.max_cases candidate test cases for one chunk.

        Raises AIGenerationError when the provider call fails or its output cannot be parsed.
        """
        pass
