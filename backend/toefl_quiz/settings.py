from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_MODEL")
	gemini_temperature: float = Field(default=0.7, validation_alias="GEMINI_TEMPERATURE")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="TOEFL Quiz", validation_alias="OPENROUTER_TITLE")

	# Generation retry policy; total latency is bounded by attempts x timeout plus backoff
	ai_max_attempts: int = Field(default=3, validation_alias="AI_MAX_ATTEMPTS")
	ai_backoff_seconds: float = Field(default=1.0, validation_alias="AI_BACKOFF_SECONDS")
	ai_attempt_timeout_seconds: float = Field(default=45.0, validation_alias="AI_ATTEMPT_TIMEOUT_SECONDS")

	# Auth configuration
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=120, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
	# Seed user
	seed_username: str | None = Field(default=None, validation_alias="SEED_USERNAME")
	seed_password_plain: str | None = Field(default=None, validation_alias="SEED_PASSWORD")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# Quiz limits
	free_daily_quizzes: int = Field(default=3, validation_alias="FREE_DAILY_QUIZZES")
	guest_quiz_limit: int = Field(default=1, validation_alias="GUEST_QUIZ_LIMIT")
	guest_quiz_window_seconds: int = Field(default=60 * 60, validation_alias="GUEST_QUIZ_WINDOW_SECONDS")
	rate_limit_sweep_seconds: int = Field(default=5 * 60, validation_alias="RATE_LIMIT_SWEEP_SECONDS")
	min_questions: int = Field(default=5, validation_alias="MIN_QUESTIONS")
	max_questions: int = Field(default=20, validation_alias="MAX_QUESTIONS")

	# Guest sessions
	guest_session_hours: int = Field(default=24, validation_alias="GUEST_SESSION_HOURS")
	guest_cookie_name: str = Field(default="quiz_session", validation_alias="GUEST_COOKIE_NAME")

	# Housekeeping: purge expired guest quizzes (0 disables the loop)
	cleanup_interval_seconds: int = Field(default=60 * 60, validation_alias="CLEANUP_INTERVAL_SECONDS")

	environment: str = Field(default="development", validation_alias="ENVIRONMENT")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	@property
	def is_production(self) -> bool:
		return self.environment.lower() == "production"

settings = Settings()
