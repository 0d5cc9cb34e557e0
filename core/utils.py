import json
import re
from typing import Any, Dict, Optional

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def parse_llm_json(content: str) -> Optional[Dict[str, Any]]:
    """
    Parse JSON content returned by an LLM.

    Models often wrap JSON in Markdown code fences, or add a sentence
    around it; both are stripped here.

    Args:
        content: raw model output

    Returns:
        The parsed object, or None if nothing usable was found.

    Example:
        >>> parse_llm_json('```json\\n{"key": "value"}\\n```')
        {'key': 'value'}
    """
    if not content:
        return None

    match = _FENCE.search(content)
    if match:
        content = match.group(1)

    try:
        data = json.loads(content.strip())
    except json.JSONDecodeError:
        start, end = content.find("{"), content.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(content[start:end + 1])
        except json.JSONDecodeError:
            return None

    return data if isinstance(data, dict) else None
