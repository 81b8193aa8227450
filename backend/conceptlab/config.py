import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from conceptlab.errors import ConfigurationError

# Load .env from project root
load_dotenv()

MODEL_API_URL = os.getenv("CLAUDE_API_URL", "https://api.anthropic.com/v1/messages")
MODEL_NAME = os.getenv("CLAUDE_MODEL", "claude-3-opus-20240229")
MODEL_API_VERSION = os.getenv("CLAUDE_API_VERSION", "2023-06-01")

PROMPT_TEMPLATES_DIR = os.getenv(
    "PROMPT_TEMPLATES_DIR",
    str(Path(__file__).resolve().parent / "prompts"),
)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///conceptlab.db")
CACHE_BACKEND = os.getenv("CACHE_BACKEND", "memory")  # memory | sql

DEFAULT_CACHE_TTL = 3600


@dataclass(frozen=True)
class ModelConfig:
    """
    Everything the gateway needs to talk to the model API.

    Built once at the edge (``from_env``) and handed to the gateway;
    nothing below this object reads the environment.
    """

    api_key: str
    api_url: str = MODEL_API_URL
    model: str = MODEL_NAME
    api_version: str = MODEL_API_VERSION
    max_tokens: int = 4000
    temperature: float = 0.7
    timeout: float = 300.0
    cache_ttl: int = DEFAULT_CACHE_TTL

    def __post_init__(self):
        if not self.api_key:
            raise ConfigurationError("CLAUDE_API_KEY is not defined")
        if self.timeout <= 0:
            raise ConfigurationError("model request timeout must be positive")

    @classmethod
    def from_env(cls) -> "ModelConfig":
        return cls(
            api_key=os.getenv("CLAUDE_API_KEY", ""),
            api_url=os.getenv("CLAUDE_API_URL", MODEL_API_URL),
            model=os.getenv("CLAUDE_MODEL", MODEL_NAME),
            api_version=os.getenv("CLAUDE_API_VERSION", MODEL_API_VERSION),
            max_tokens=int(os.getenv("CLAUDE_MAX_TOKENS", "4000")),
            temperature=float(os.getenv("CLAUDE_TEMPERATURE", "0.7")),
            timeout=float(os.getenv("CLAUDE_TIMEOUT", "300")),
            cache_ttl=int(os.getenv("CLAUDE_CACHE_TTL", str(DEFAULT_CACHE_TTL))),
        )
