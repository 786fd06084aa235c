from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "*"

    # Text generation provider ("openai" for any OpenAI-compatible API, or "ollama")
    AI_PROVIDER: str = "openai"
    AI_API_KEY: str = "mock_ai_key"
    AI_BASE_URL: str = "https://api.openai.com/v1"
    AI_MODEL: str = "gpt-4o-mini"
    OLLAMA_HOST: str = "http://127.0.0.1:11434"
    OLLAMA_MODEL: str = "llama3.1:8b"
    AI_CONNECT_TIMEOUT_SECONDS: float = 5.0

    # Per-task classifier timeouts
    ISSUE_DETECTION_TIMEOUT_SECONDS: float = 15.0
    SENTIMENT_TIMEOUT_SECONDS: float = 10.0
    CLAIM_VALIDATION_TIMEOUT_SECONDS: float = 15.0
    REASONING_TIMEOUT_SECONDS: float = 15.0

    # Ledger persistence ("memory" or "sql")
    LEDGER_BACKEND: str = "memory"
    DATABASE_URL: str = "sqlite+aiosqlite:///./triagedesk.db"
    # Finished cases kept in memory for lookups; the oldest are evicted first
    CLOSED_CASE_RETENTION: int = 1000

    # Compensation policy
    GOLD_BY_IMPACT: dict[str, int] = {
        "critical": 1000,
        "severe": 500,
        "moderate": 250,
        "minor": 150,
        "minimal": 100,
    }
    GEMS_BY_IMPACT: dict[str, int] = {
        "critical": 50,
        "severe": 25,
        "moderate": 10,
        "minor": 5,
        "minimal": 0,
    }
    ACCOUNT_RESOURCE_PACK: dict[str, int] = {"food": 1000, "wood": 1000, "stone": 500}
    CRITICAL_RESTORATION_ITEM: str = "Account Restoration Chest"
    VIP_BONUS_THRESHOLD: int = 5
    VIP_BONUS_MULTIPLIER: float = 2.0
    HIGH_TIER_VIP_THRESHOLD: int = 10
    URGENCY_GOLD_MULTIPLIER: float = 1.5
    CHURN_RISK_THRESHOLD: int = 70
    CHURN_GOLD_MULTIPLIER: float = 1.25

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
