from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # LLM (OpenAI-compatible endpoint, OpenRouter by default)
    llm_api_key: str = ""
    llm_base_url: str = "https://openrouter.ai/api/v1"
    llm_model_ids: dict[str, str] = {
        "groq-llama": "meta-llama/llama-3.3-70b-instruct",
        "gpt-4": "openai/gpt-4",
        "claude-3-sonnet": "anthropic/claude-3-sonnet",
    }
    llm_temperature: float = 0.7
    llm_max_tokens: int = 1024
    llm_timeout_seconds: float = 60.0

    # Search provider
    search_provider: str = "tavily"  # tavily | brave
    tavily_api_key: str = ""
    brave_api_key: str = ""
    search_fallback_to_tavily: bool = True
    search_timeout_seconds: float = 30.0

    # Extraction
    extract_provider: str = "http"  # http | tavily
    extract_timeout_seconds: float = 30.0
    extractor_max_page_chars: int = 120000
    extract_user_agent: str = "Mozilla/5.0 (compatible; InvestigatorBot/0.1)"

    # Memory
    memory_backend: str = "chromadb"  # chromadb | mem0
    chroma_persist_dir: str = ".cache/chroma"
    mem0_api_key: str = ""
    mem0_base_url: str = "https://api.mem0.ai/v1"
    memory_timeout_seconds: float = 15.0
    default_user_id: str = "default-user"
    local_embed_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    local_embed_batch_size: int = 32

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
