from typing import Dict, List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Create a .env file in the backend directory to override defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/filing_intake.db"

    # File storage
    data_dir: str = "./data"
    max_upload_bytes: int = 50 * 1024 * 1024

    # Logging
    log_level: str = "INFO"

    # OCR
    tesseract_config: str = "--psm 6"
    tesseract_lang: str = "eng"
    ocr_dpi: int = 250
    ocr_concurrency: int = 2
    pdf_min_text_chars: int = 10  # Below this a PDF is treated as scan-only

    # LLM extraction
    llm_enabled: bool = False
    llm_provider: str = "ollama"
    llm_fallback_to_regex: bool = True
    llm_max_input_chars: int = 8000
    llm_usage_history_limit: int = 1000
    # USD per 1M tokens: [input, output]. Self-hosted Ollama/vLLM models cost nothing;
    # hosted entries apply when the vLLM endpoint fronts a paid API. Unlisted models are priced at zero.
    llm_model_pricing: Dict[str, List[float]] = {
        "gemini-1.5-flash": [0.075, 0.30],
        "gemini-1.5-pro": [1.25, 5.00],
        "llama3.2:3b": [0.0, 0.0],
    }

    # Ollama Configuration
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2:3b"
    ollama_timeout: float = 180.0
    ollama_max_retries: int = 3
    ollama_max_tokens: int = 8192

    # vLLM Configuration
    vllm_base_url: str = "http://localhost:8000"
    vllm_model: str = "llama3.2:3b"
    vllm_timeout: float = 180.0
    vllm_max_retries: int = 3
    vllm_max_tokens: int = 2048  # Lower default for smaller context models

    def get_llm_config(self, provider: str) -> dict:
        """Get LLM configuration for the specified provider."""
        if provider == "vllm":
            return {
                "provider": "vllm",
                "base_url": self.vllm_base_url,
                "model": self.vllm_model,
                "timeout": self.vllm_timeout,
                "max_retries": self.vllm_max_retries,
                "max_tokens": self.vllm_max_tokens,
            }
        else:
            return {
                "provider": "ollama",
                "base_url": self.ollama_base_url,
                "model": self.ollama_model,
                "timeout": self.ollama_timeout,
                "max_retries": self.ollama_max_retries,
                "max_tokens": self.ollama_max_tokens,
            }

    def get_model_pricing(self, model: str) -> tuple:
        """Return (input, output) USD price per 1M tokens for a model."""
        prices = self.llm_model_pricing.get(model)
        if not prices or len(prices) != 2:
            return 0.0, 0.0
        return float(prices[0]), float(prices[1])


settings = Settings()
