import requests

from conceptlab.config import ModelConfig
from conceptlab.errors import ModelRequestFailed
from conceptlab.inference.base import ModelClient, ModelRequest, ModelResponse


class MessagesClient(ModelClient):
    """
    Client for the Anthropic-style messages endpoint.

    Request:  {model, messages: [{role: user, content}], max_tokens, temperature, system?}
    Response: {content | message.content, usage: {input_tokens, output_tokens}}
    """

    def __init__(self, config: ModelConfig, session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        return {
            "content-type": "application/json",
            "x-api-key": self.config.api_key,
            "anthropic-version": self.config.api_version,
        }

    def build_payload(self, request: ModelRequest) -> dict:
        payload = {
            "model": self.config.model,
            "messages": [
                {
                    "role": "user",
                    "content": request.prompt,
                }
            ],
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if request.system:
            payload["system"] = request.system
        return payload

    def complete(self, request: ModelRequest) -> ModelResponse:
        try:
            response = self.session.post(
                self.config.api_url,
                json=self.build_payload(request),
                headers=self._headers(),
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ModelRequestFailed(e) from e

        return parse_response_payload(data)


def _extract_content(data: dict) -> str:
    message = data.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]

    content = data.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type", "text") == "text"
        ]
        if parts:
            return "".join(parts)

    raise ModelRequestFailed("response carries no text content")


def parse_response_payload(data) -> ModelResponse:
    if not isinstance(data, dict):
        raise ModelRequestFailed("response body is not a JSON object")

    usage = data.get("usage") or {}
    try:
        input_tokens = int(usage.get("input_tokens", 0))
        output_tokens = int(usage.get("output_tokens", 0))
    except (TypeError, ValueError) as e:
        raise ModelRequestFailed(f"malformed usage block: {e}") from e

    return ModelResponse(
        content=_extract_content(data),
        input_tokens=input_tokens,
        output_tokens=output_tokens,
    )
