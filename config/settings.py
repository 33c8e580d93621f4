"""
Configuration settings for the retail insights query service
Loads environment variables and provides configuration access
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment"""

    # Server
    PORT: int = int(os.getenv("PORT", "8001"))
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = APP_ENV == "development"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    DEFAULT_LANGUAGE: str = os.getenv("DEFAULT_LANGUAGE", "en")

    # Supabase
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")
    # "supabase" or "memory" (local simulation / tests)
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "supabase")

    # Google Gemini
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    MODEL_NAME: str = os.getenv("MODEL_NAME", "gemini-2.0-flash")

    # Planner
    PLANNER_TEMPERATURE: float = float(os.getenv("PLANNER_TEMPERATURE", "0.1"))
    PLANNER_TOP_K: int = int(os.getenv("PLANNER_TOP_K", "40"))
    PLANNER_TOP_P: float = float(os.getenv("PLANNER_TOP_P", "0.95"))
    PLANNER_MAX_OUTPUT_TOKENS: int = int(os.getenv("PLANNER_MAX_OUTPUT_TOKENS", "2048"))
    PLANNER_MAX_ATTEMPTS: int = int(os.getenv("PLANNER_MAX_ATTEMPTS", "3"))
    PLANNER_RETRY_DELAY_SECONDS: float = float(os.getenv("PLANNER_RETRY_DELAY_SECONDS", "2"))
    PLANNER_TIMEOUT_SECONDS: int = int(os.getenv("PLANNER_TIMEOUT_SECONDS", "30"))
    PLANNER_HISTORY_TURNS: int = int(os.getenv("PLANNER_HISTORY_TURNS", "5"))
    MIN_PLAN_CONFIDENCE: float = float(os.getenv("MIN_PLAN_CONFIDENCE", "0.7"))

    # Execution
    MAX_PARALLEL_CAPABILITIES: int = int(os.getenv("MAX_PARALLEL_CAPABILITIES", "4"))
    GATEWAY_TIMEOUT_SECONDS: int = int(os.getenv("GATEWAY_TIMEOUT_SECONDS", "30"))

    # Rate limiting (requests per minute per tenant)
    RATE_LIMIT_FREE: int = int(os.getenv("RATE_LIMIT_FREE", "10"))
    RATE_LIMIT_PROFESSIONAL: int = int(os.getenv("RATE_LIMIT_PROFESSIONAL", "30"))
    RATE_LIMIT_ENTERPRISE: int = int(os.getenv("RATE_LIMIT_ENTERPRISE", "100"))
    RATE_LIMIT_IDLE_SECONDS: int = int(os.getenv("RATE_LIMIT_IDLE_SECONDS", "600"))

    @classmethod
    def validate(cls) -> list[str]:
        """Validate required settings, returns list of missing vars"""
        missing = []
        if cls.STORAGE_BACKEND == "supabase":
            if not cls.SUPABASE_URL:
                missing.append("SUPABASE_URL")
            if not cls.SUPABASE_KEY:
                missing.append("SUPABASE_KEY")
        if not cls.GEMINI_API_KEY:
            missing.append("GEMINI_API_KEY")
        return missing


settings = Settings()
