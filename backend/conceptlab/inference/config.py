from conceptlab.config import ModelConfig
from .messages_client import MessagesClient


def get_model_client(config: ModelConfig | None = None) -> MessagesClient:
    return MessagesClient(config or ModelConfig.from_env())
