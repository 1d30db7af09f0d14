"""Pull Java source out of a free-form model response."""

from __future__ import annotations

import re

_JAVA_FENCE_RE = re.compile(
    r"```java(?!\w)[ \t]*\r?\n?(.*?)(?:```|\Z)", re.DOTALL | re.IGNORECASE
)
_ANY_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*\r?\n(.*?)```", re.DOTALL)
_SOURCE_START = ("package ", "import ")


def extract_code_block(response: str) -> str:
    """Return the Java source contained in *response*, or ``""`` if there is none.

    Preference order: the first ```` ```java ```` fence (an unterminated fence
    runs to the end of the text), then the first fence of any language, then
    the whole response when it already starts like a Java file.
    """
    match = _JAVA_FENCE_RE.search(response)
    if match:
        return match.group(1).strip()

    match = _ANY_FENCE_RE.search(response)
    if match:
        return match.group(1).strip()

    stripped = response.strip()
    if stripped.startswith(_SOURCE_START):
        return stripped
    return ""
