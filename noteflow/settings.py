"""Settings loaded from environment variables."""

import tempfile
from typing import Any, Mapping, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All tunables for a NoteFlow process.

    Every field has a default so that a partially configured environment still
    produces a usable (degraded) process. Backends with missing credentials are
    reported as unavailable instead of failing at startup.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # Sources
    dropbox_folder_path: str = Field("/Recordings", validation_alias="DROPBOX_FOLDER_PATH")
    dropbox_pdf_folder_path: str = Field("/Apps/PDFs", validation_alias="DROPBOX_PDF_FOLDER_PATH")
    dropbox_token_file: str = Field("dropbox_token.json", validation_alias="DROPBOX_TOKEN_FILE")
    dropbox_app_secret: Optional[str] = Field(None, validation_alias="DROPBOX_APP_SECRET")
    gdrive_folder_id: Optional[str] = Field(None, validation_alias="GDRIVE_FOLDER_ID")
    gdrive_pdf_folder_id: Optional[str] = Field(None, validation_alias="GDRIVE_PDF_FOLDER_ID")
    gdrive_service_account_file: str = Field(
        "service_account_key.json", validation_alias="GDRIVE_SERVICE_ACCOUNT_FILE"
    )

    # Sinks
    notion_api_key: Optional[str] = Field(None, validation_alias="NOTION_API_KEY")
    notion_database_id: Optional[str] = Field(None, validation_alias="NOTION_DATABASE_ID")
    notion_pdf_database_id: Optional[str] = Field(None, validation_alias="NOTION_PDF_DATABASE_ID")

    # Models
    llm_provider: str = Field("openai", validation_alias="LLM_PROVIDER")
    analysis_model: Optional[str] = Field(None, validation_alias="ANALYSIS_MODEL")
    transcription_model: Optional[str] = Field(None, validation_alias="TRANSCRIPTION_MODEL")
    vision_model: Optional[str] = Field(None, validation_alias="VISION_MODEL")
    max_tokens: int = Field(1500, validation_alias="MAX_TOKENS")
    temperature: float = Field(0.3, validation_alias="TEMPERATURE")

    # Extraction and limits
    ocr_language: str = Field("eng", validation_alias="OCR_LANGUAGE")
    max_file_size_mb: int = Field(50, validation_alias="MAX_FILE_SIZE_MB")
    max_document_text_length: int = Field(50000, validation_alias="MAX_DOCUMENT_TEXT_LENGTH")
    temp_dir: str = Field(default_factory=tempfile.gettempdir, validation_alias="TEMPORARY_FOLDER")

    # Budget, concurrency and scanning
    daily_api_limit: int = Field(1000, validation_alias="DAILY_API_LIMIT")
    max_concurrent_files: int = Field(3, validation_alias="MAX_CONCURRENT_FILES")
    scan_interval_seconds: int = Field(300, validation_alias="SCAN_INTERVAL_SECONDS")

    # Deduplication windows
    dedup_window_seconds: float = Field(120.0, validation_alias="DEDUP_WINDOW_SECONDS")
    dedup_capacity: int = Field(100, validation_alias="DEDUP_CAPACITY")

    # Validation gate thresholds
    validation_min_text_chars: int = Field(50, validation_alias="VALIDATION_MIN_TEXT_CHARS")
    validation_min_summary_chars: int = Field(20, validation_alias="VALIDATION_MIN_SUMMARY_CHARS")
    validation_max_repetition_ratio: float = Field(
        3.0, validation_alias="VALIDATION_MAX_REPETITION_RATIO"
    )
    validation_repetition_max_words: int = Field(
        200, validation_alias="VALIDATION_REPETITION_MAX_WORDS"
    )

    verbose: bool = Field(False, validation_alias="VERBOSE")

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_values(cls, data: Any) -> Any:
        # An exported but empty variable means "use the default"
        if isinstance(data, dict):
            return {
                key: value for key, value in data.items()
                if not (isinstance(value, str) and not value.strip())
            }
        return data

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ and .env

        Returns:
            Settings instance

        Raises:
            pydantic.ValidationError: If a variable cannot be parsed
        """
        if env is None:
            return cls()
        return cls.model_validate(dict(env))

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024
