"""Content validation gate, run after analysis and before publishing."""

import os
import re
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .file_metadata import InsightResult

if TYPE_CHECKING:
    from noteflow.settings import Settings


# test / sample / demo as a whole word in the filename stem
TEST_FILENAME_RE = re.compile(r"(?:^|[\s_\-.])(test|sample|demo)(?:$|[\s_\-.\d])", re.IGNORECASE)


@dataclass
class ValidationConfig:
    """Thresholds for the validation gate. All are tunable via settings."""
    min_text_chars: int = 50
    min_summary_chars: int = 20
    max_repetition_ratio: float = 3.0
    repetition_max_words: int = 200

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ValidationConfig":
        return cls(
            min_text_chars=settings.validation_min_text_chars,
            min_summary_chars=settings.validation_min_summary_chars,
            max_repetition_ratio=settings.validation_max_repetition_ratio,
            repetition_max_words=settings.validation_repetition_max_words,
        )


@dataclass(frozen=True)
class ValidationVerdict:
    accepted: bool
    reason: Optional[str] = None


ACCEPTED = ValidationVerdict(True)


def repetition_ratio(text: str) -> float:
    """Total words divided by unique words (case-insensitive)."""
    words = re.findall(r"\w+", text.lower())
    if not words:
        return 0.0
    return len(words) / len(set(words))


class ValidationGate:
    """Rejects test, placeholder and low-content results before they are published."""

    def __init__(self, config: Optional[ValidationConfig] = None) -> None:
        self.config = config or ValidationConfig()

    def check(self, file_name: str, text: str, insight: InsightResult) -> ValidationVerdict:
        """Check a result.

        Returns:
            ValidationVerdict; rejected verdicts carry a human-readable reason
        """
        stem = os.path.splitext(os.path.basename(file_name))[0]
        match = TEST_FILENAME_RE.search(stem)
        if match:
            return ValidationVerdict(
                False,
                f"filename matches test/sample/demo pattern ('{match.group(1)}' in '{file_name}')",
            )

        stripped = text.strip()
        if len(stripped) < self.config.min_text_chars:
            return ValidationVerdict(
                False,
                f"extracted text too short ({len(stripped)} < {self.config.min_text_chars} characters)",
            )

        summary = (insight.summary or "").strip()
        if len(summary) < self.config.min_summary_chars:
            return ValidationVerdict(
                False,
                f"summary too short ({len(summary)} < {self.config.min_summary_chars} characters)",
            )

        word_count = len(stripped.split())
        if word_count < self.config.repetition_max_words:
            ratio = repetition_ratio(stripped)
            if ratio > self.config.max_repetition_ratio:
                return ValidationVerdict(
                    False,
                    f"text is repetitive ({ratio:.1f} words per unique word over {word_count} words)",
                )

        return ACCEPTED
