import json
import re

_FENCED_JSON = re.compile(r"```(?:json|JSON)?[ \t]*\n(.*?)\n[ \t]*```", re.DOTALL)


def extract_json_block(text: str) -> dict:
    """
    Extract the first fenced ```json block from LLM output.
    Returns {} if there is none or it does not parse to an object.
    """
    if not text or not isinstance(text, str):
        return {}

    for match in _FENCED_JSON.finditer(text):
        try:
            data = json.loads(match.group(1))
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return {}
