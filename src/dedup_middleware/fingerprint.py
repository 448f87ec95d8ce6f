"""Request fingerprints for detecting token reuse.

A fingerprint identifies what a request asked for, so a token replayed with
a different payload can be refused instead of silently receiving another
request's cached response. Two requests get the same fingerprint when they
share method, path (trailing slash ignored), query parameters in any order,
the selected headers, and body bytes.
"""

import hashlib
import json
from urllib.parse import parse_qsl, urlencode


def compute_fingerprint(
    method: str,
    path: str,
    query_string: str,
    headers: dict[str, str],
    body: bytes,
    included_headers: list[str] | None = None,
) -> str:
    """Return the SHA-256 hex fingerprint of a request.

    Args:
        method: HTTP method, any case.
        path: URL path.
        query_string: Raw query string without the leading '?'.
        headers: Request headers; names are matched case-insensitively.
        body: Raw request body.
        included_headers: Header names that take part in the fingerprint.
            Defaults to ``["content-type"]``.

    Returns:
        64 lowercase hex characters.

    Examples:
        >>> a = compute_fingerprint("POST", "/user/", "b=2&a=1", {}, b"{}")
        >>> b = compute_fingerprint("post", "/user", "a=1&b=2", {}, b"{}")
        >>> a == b
        True
    """
    if included_headers is None:
        included_headers = ["content-type"]

    digest = hashlib.sha256()
    for part in (
        method.upper(),
        _canonical_path(path),
        _canonical_query(query_string),
        _canonical_headers(headers, included_headers),
        hashlib.sha256(body).hexdigest(),
    ):
        digest.update(part.encode("utf-8"))
        digest.update(b"\n")
    return digest.hexdigest()


def _canonical_path(path: str) -> str:
    if not path or path == "/":
        return "/"
    return path.rstrip("/") or "/"


def _canonical_query(query_string: str) -> str:
    pairs = parse_qsl(query_string, keep_blank_values=True)
    return urlencode(sorted(pairs))


def _canonical_headers(headers: dict[str, str], included_headers: list[str]) -> str:
    wanted = {name.lower() for name in included_headers}
    selected = {
        name.lower(): value.strip() for name, value in headers.items() if name.lower() in wanted
    }
    return json.dumps(selected, sort_keys=True, separators=(",", ":"))
