"""Pre-decoding cleanup of rig's JSON output.

On Windows, rig prints installation paths such as `"C:\\Program Files\\R"`
without escaping the backslashes, which is invalid JSON. This step runs ahead
of `json.loads` and only touches string literals that start with a drive
letter; every other field is left byte-for-byte identical.

Best-effort: if the payload is still not decodable afterwards the caller
reports it as malformed.
"""

from __future__ import annotations

import re

# A complete JSON string literal whose content starts with `X:\`.
_DRIVE_PATH_LITERAL = re.compile(r'"([A-Za-z]:\\[^"\r\n]*)"')
# One backslash, optionally already paired with a second one.
_BACKSLASH_RUN = re.compile(r"\\\\?")


def _escape_separators(match: re.Match[str]) -> str:
    content = _BACKSLASH_RUN.sub(lambda _m: "\\\\", match.group(1))
    return f'"{content}"'


def sanitize_json_paths(raw: str) -> str:
    """Escape lone backslashes inside drive-letter path literals.

    Already-escaped separators (`\\\\`) are kept as they are, so the function
    is idempotent on output that is valid to begin with.
    """

    if "\\" not in raw:
        return raw
    return _DRIVE_PATH_LITERAL.sub(_escape_separators, raw)
