import re
from typing import Any, List, Mapping

_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")


def extract_variables(body: str) -> List[str]:
    """Placeholder names in first-occurrence order, duplicates removed."""
    seen = []
    for name in _PLACEHOLDER_RE.findall(body or ""):
        name = name.strip()
        if name and name not in seen:
            seen.append(name)
    return seen


def render_template_body(body: str, values: Mapping[str, Any]) -> str:
    """Fill ``{name}`` placeholders; unknown ones are left as written."""
    def _sub(m):
        key = m.group(1).strip()
        if key in values and values[key] is not None:
            return str(values[key])
        return m.group(0)
    return _PLACEHOLDER_RE.sub(_sub, body or "")
