from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Athena"
    DEBUG: bool = False

    # Embeddings (Voyage AI)
    VOYAGE_API_KEY: str = ""
    VOYAGE_BASE_URL: str = "https://api.voyageai.com/v1"
    EMBEDDING_MODEL: str = "voyage-law-2"
    EMBEDDING_DIM: int = 1024
    EMBEDDING_TIMEOUT_SECONDS: float = 30.0

    # Corpus store
    CORPUS_BACKEND: str = "memory"  # memory | qdrant
    QDRANT_URL: str = "http://localhost:6333"
    QDRANT_COLLECTION: str = "legal_chunks"
    QDRANT_API_KEY: str = ""

    # Retrieval
    RAG_RELEVANCE_THRESHOLD: float = 0.7
    RAG_TOP_K: int = 5
    RAG_SNIPPET_MAX_CHARS: int = 200
    RAG_HISTORY_WINDOW: int = 3
    RAG_ALLOW_MIXED_EMBEDDING_MODELS: bool = False
    RAG_LOCAL_MATCHER_ENABLED: bool = False
    MAX_QUESTION_CHARS: int = 4000

    # Generation (LiteLLM)
    GENERATION_PROVIDER: str = "gemini"
    GOOGLE_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""
    GENERATION_TEMPERATURE: float = 0.1
    GENERATION_TOP_P: float = 0.8
    GENERATION_TOP_K: int = 40
    GENERATION_MAX_TOKENS: int = 1024
    GENERATION_TIMEOUT_SECONDS: float = 60.0

    # Audit (Supabase PostgREST)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    AUDIT_TABLE: str = "ai_interactions"

    # Observability
    SENTRY_DSN: str = ""
    LANGFUSE_PUBLIC_KEY: str = ""
    LANGFUSE_SECRET_KEY: str = ""
    LANGFUSE_HOST: str = "http://localhost:3001"

    # Rate limiting (SlowAPI)
    RATE_LIMIT_DEFAULT: str = "120/minute"
    RATE_LIMIT_QA: str = "30/minute"

    # CORS
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
