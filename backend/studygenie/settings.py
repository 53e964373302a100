from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	# Text and vision flows
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	# Topic image generation needs a model that can answer with IMAGE parts
	gemini_image_model: str = Field(default="gemini-2.0-flash-preview-image-generation", validation_alias="GEMINI_IMAGE_MODEL")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")
	# Deadline for a single model call
	gemini_timeout_seconds: float = Field(default=60.0, validation_alias="GEMINI_TIMEOUT_SECONDS")

	# Study plan image fan-out
	study_plan_image_concurrency: int = Field(default=4, validation_alias="STUDY_PLAN_IMAGE_CONCURRENCY")
	topic_image_max_chars: int = Field(default=100, validation_alias="TOPIC_IMAGE_MAX_CHARS")

	# Extra attempts for network/timeout failures, 0 disables
	transient_retry_attempts: int = Field(default=1, validation_alias="TRANSIENT_RETRY_ATTEMPTS")
	transient_retry_backoff_seconds: float = Field(default=0.5, validation_alias="TRANSIENT_RETRY_BACKOFF_SECONDS")

	# Input guards (~4 chars per token)
	quiz_max_notes_chars: int = Field(default=300000, validation_alias="QUIZ_MAX_NOTES_CHARS")
	key_points_max_words: int = Field(default=5000, validation_alias="KEY_POINTS_MAX_WORDS")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
