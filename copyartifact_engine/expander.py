"""``$VAR`` / ``${VAR}`` parameter expansion against a build environment."""
import re
from typing import Mapping

_PLACEHOLDER = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_.]*)\}|([A-Za-z_][A-Za-z0-9_]*))")


def expand(raw: str, env: Mapping[str, str]) -> str:
    """Substitutes every placeholder in ``raw``; unknown names expand to ``""``."""
    if not raw:
        return ""

    def _lookup(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        return env.get(name, "")

    return _PLACEHOLDER.sub(_lookup, raw)


def has_placeholders(raw: str) -> bool:
    """A reference with any ``$`` is treated as parameterized."""
    return bool(raw) and "$" in raw
