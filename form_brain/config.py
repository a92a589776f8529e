"""Environment-based configuration for the form brain."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Form brain settings, loaded from environment variables."""

    # Server
    PORT: int = 8092
    LOG_LEVEL: str = "INFO"

    # Gemini connection (empty key = inference unavailable, local dev default)
    GEMINI_API_KEY: str = ""
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    # Tried in order until one answers
    GEMINI_MODELS: list[str] = [
        "gemini-2.5-flash",
        "gemini-2.0-flash-exp",
        "gemini-2.0-flash",
        "gemini-2.5-pro",
        "gemini-2.5-flash-preview-05-20",
    ]

    # Timeouts and per-model retry (1 attempt = each candidate tried once)
    GEMINI_TIMEOUT_SECONDS: int = 120
    GEMINI_CONNECT_TIMEOUT: int = 15
    GEMINI_RETRY_ATTEMPTS: int = 1
    GEMINI_RETRY_DELAY: float = 1.0
    GEMINI_RETRY_BACKOFF: float = 2.0

    # Form classification: "prompt" asks the model for a label,
    # "keywords" scores a generic extraction against keyword lists
    CLASSIFIER_MODE: str = "prompt"
    CLASSIFIER_THRESHOLDS: dict[str, int] = {"DA2062": 2, "DA3161": 2, "OCIE": 1}

    # Receipt store
    STORAGE_DIR: str = "./data"

    model_config = {"env_prefix": "", "case_sensitive": True}


settings = Settings()
