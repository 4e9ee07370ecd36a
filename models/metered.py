"""LLM wrapper that charges every call against the daily budget."""

from typing import Optional, TYPE_CHECKING

from .base import LLM, Transcription, VISION_EXTRACTION_PROMPT

if TYPE_CHECKING:
    from workflows.budget import CallBudget


class MeteredLLM(LLM):
    """Delegates to another LLM after consuming one unit of budget per call.

    Raises BudgetExceededError (from the budget) before any network traffic
    once the daily ceiling is reached.
    """

    def __init__(self, inner: LLM, budget: "CallBudget") -> None:
        self.inner = inner
        self.budget = budget

    @property
    def name(self) -> str:
        return self.inner.name

    def complete(self, prompt: str, max_tokens: int = 1500,
                 temperature: float = 0.3, system: Optional[str] = None) -> str:
        self.budget.consume()
        return self.inner.complete(prompt, max_tokens, temperature, system)

    def transcribe(self, audio_path: str) -> Transcription:
        self.budget.consume()
        return self.inner.transcribe(audio_path)

    def vision_extract(self, image_bytes: bytes, instruction: str = VISION_EXTRACTION_PROMPT,
                       mime_type: str = "image/png") -> str:
        self.budget.consume()
        return self.inner.vision_extract(image_bytes, instruction, mime_type)
