"""Configuration management for the Fable story engine.

This module provides centralized configuration for all engine components.
All settings are loaded from environment variables with sensible defaults.

Environment Variables:
    Required:
        GEMINI_API_KEY: Google Gemini API key (not needed when every model is local)

    Models (PydanticAI format - provider:model, or openai:{model}@{base_url} for local):
        NARRATOR_MODEL: Model that writes each story turn
        SUMMARY_MODEL: Model that writes memory summaries
        EXTRACTOR_MODEL: Model used by the extraction fallback
        LLM_TIMEOUT: Per-request timeout in seconds

    Embeddings:
        EMBEDDING_PROVIDER: 'local' (sentence-transformers) or 'ollama'
        EMBEDDING_MODEL: Model name for the selected provider
        EMBEDDING_DIM: Vector dimension shared by provider and store schema
        OLLAMA_URL: Ollama endpoint for the 'ollama' provider
        EMBEDDING_NORMALIZE: L2-normalize vectors returned by Ollama

    Memory:
        MEMORY_BACKEND: 'sqlite' or 'chroma'
        DB_PATH: SQLite database file path
        VECTOR_DB_PATH: ChromaDB persistence directory
        COLLECTION_NAME: ChromaDB collection name
        RELEVANT_MEMORY_LIMIT: Relevant memories included per prompt
        RECENT_HISTORY_SIZE: Recent records included per prompt
        AWAIT_PERSISTENCE: Wait for a turn to be stored before returning it

    Story:
        TEMPLATES_DIR: Directory of prompt templates (.yaml / .txt)
        STORY_TEMPLATE: Template name used for turn prompts
        SCENARIO_PATH: Story scenario JSON file (built-in demo story if empty)

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing

    Logging:
        LOG_LEVEL: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_BACKUP_COUNT: Number of rotated log files to keep
        LOG_MAX_BYTES: Max log file size in bytes (0 = time-based rotation)
        LOG_FORMAT: Log format ('text' or 'json' for structured logging)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

# Bundled templates shipped with the prompts package
DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent / "prompts" / "templates"

DEFAULT_MODEL = "google-gla:gemini-3-flash-preview"


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Environment variable value or default
    """
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_float(key: str, default: float) -> float:
    """Get float environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as float
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def is_local_model(model_str: str) -> bool:
    """Return True for local OpenAI-compatible model strings (openai:{model}@{url})."""
    return model_str.startswith("openai:") and "@" in model_str


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    Use Config.load() to create an instance with values from the environment.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === Required ===
    gemini_api_key: str = ""  # GEMINI_API_KEY - Google AI API key

    # === AI Models ===
    narrator_model: str = DEFAULT_MODEL   # Story turns and the opening scene
    summary_model: str = DEFAULT_MODEL    # Memory summaries
    extractor_model: str = DEFAULT_MODEL  # Extraction fallback
    llm_timeout: float = 60.0  # LLM_TIMEOUT - Seconds per request

    # === Embeddings ===
    embedding_provider: str = "local"  # EMBEDDING_PROVIDER - 'local' or 'ollama'
    embedding_model: str = "BAAI/bge-small-en-v1.5"
    embedding_dim: int = 384  # EMBEDDING_DIM - Must match the store schema
    ollama_url: str = "http://localhost:11434"
    embedding_normalize: bool = True

    # === Memory Store ===
    memory_backend: str = "sqlite"  # MEMORY_BACKEND - 'sqlite' or 'chroma'
    db_path: Path = field(default_factory=lambda: Path("story.db"))
    vector_db_path: Path = field(default_factory=lambda: Path("vectors"))
    collection_name: str = "story_memories"
    relevant_memory_limit: int = 5
    recent_history_size: int = 3
    await_persistence: bool = True  # AWAIT_PERSISTENCE - False = store in background

    # === Story ===
    templates_dir: Path = field(default_factory=lambda: DEFAULT_TEMPLATES_DIR)
    story_template: str = "story"
    scenario_path: str = ""  # SCENARIO_PATH - Empty = built-in demo story

    # === Output Directories ===
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR

    # === Logging Configuration ===
    log_level: str = "INFO"
    log_backup_count: int = 30
    log_max_bytes: int = 0  # 0 = time-based rotation
    log_format: str = "text"  # 'text' or 'json'

    # === Optional: Observability ===
    # Requires: pip install logfire
    enable_logfire: bool = False
    logfire_token: str = ""

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            gemini_api_key=_env("GEMINI_API_KEY"),
            narrator_model=_env("NARRATOR_MODEL", DEFAULT_MODEL),
            summary_model=_env("SUMMARY_MODEL", DEFAULT_MODEL),
            extractor_model=_env("EXTRACTOR_MODEL", DEFAULT_MODEL),
            llm_timeout=_env_float("LLM_TIMEOUT", 60.0),
            embedding_provider=_env("EMBEDDING_PROVIDER", "local").lower(),
            embedding_model=_env("EMBEDDING_MODEL", "BAAI/bge-small-en-v1.5"),
            embedding_dim=_env_int("EMBEDDING_DIM", 384),
            ollama_url=_env("OLLAMA_URL", "http://localhost:11434"),
            embedding_normalize=_env_bool("EMBEDDING_NORMALIZE", True),
            memory_backend=_env("MEMORY_BACKEND", "sqlite").lower(),
            db_path=Path(_env("DB_PATH", "story.db")),
            vector_db_path=Path(_env("VECTOR_DB_PATH", "vectors")),
            collection_name=_env("COLLECTION_NAME", "story_memories"),
            relevant_memory_limit=_env_int("RELEVANT_MEMORY_LIMIT", 5),
            recent_history_size=_env_int("RECENT_HISTORY_SIZE", 3),
            await_persistence=_env_bool("AWAIT_PERSISTENCE", True),
            templates_dir=Path(_env("TEMPLATES_DIR", str(DEFAULT_TEMPLATES_DIR))),
            story_template=_env("STORY_TEMPLATE", "story"),
            scenario_path=_env("SCENARIO_PATH"),
            log_dir=Path(_env("LOG_DIR", "log")),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
        )

    @property
    def models(self) -> list[str]:
        """All configured LLM model strings."""
        return [self.narrator_model, self.summary_model, self.extractor_model]

    def validate(self) -> str | None:
        """Validate configuration for required fields and valid values.

        Returns:
            Error message string if invalid, None if valid.
        """
        needs_key = any(not is_local_model(m) for m in self.models)
        if needs_key and not self.gemini_api_key:
            return "GEMINI_API_KEY environment variable is required for remote models"
        if self.embedding_provider not in ("local", "ollama"):
            return f"Invalid EMBEDDING_PROVIDER '{self.embedding_provider}' - must be 'local' or 'ollama'"
        if self.embedding_dim <= 0:
            return "EMBEDDING_DIM must be positive"
        if self.memory_backend not in ("sqlite", "chroma"):
            return f"Invalid MEMORY_BACKEND '{self.memory_backend}' - must be 'sqlite' or 'chroma'"
        if self.relevant_memory_limit <= 0:
            return "RELEVANT_MEMORY_LIMIT must be positive"
        if self.recent_history_size < 0:
            return "RECENT_HISTORY_SIZE must be non-negative"
        if self.llm_timeout <= 0:
            return "LLM_TIMEOUT must be positive"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None
