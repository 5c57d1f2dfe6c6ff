"""Request context extraction - derives the gated path from transport inputs."""

from collections.abc import Mapping
from http.cookies import CookieError, SimpleCookie
from urllib.parse import parse_qs

from .types import RequestSignal

# Query parameter carrying the rewritten page path
REWRITE_PARAM = "it"


def extract_path(
    raw_target: str | None,
    root_prefix: str = "/",
    query_path: str | None = None,
) -> str:
    """Derive the normalized request path.

    Args:
        raw_target: Raw request target (path and optional query string),
            None when there is no web request.
        root_prefix: URL the site is installed under (e.g. "/" or "/site/").
            It is stripped so rules never need to mention it.
        query_path: Rewritten path from the rewrite parameter; when given it
            takes precedence over the raw target.

    Returns:
        Path starting with a single "/" with any query string removed, or ""
        if no request target is available.
    """
    if query_path is not None:
        path = query_path
    elif raw_target is None:
        return ""
    else:
        path = raw_target
        base = root_prefix.rstrip("/")
        if base and (path == base or path.startswith(base + "/") or path.startswith(base + "?")):
            path = path[len(base):]

    path = "/" + path.lstrip("/")
    path, _, _ = path.partition("?")
    return path


def has_cookie(cookie_header: str, name: str) -> bool:
    """Check whether a Cookie header carries a cookie called *name*."""
    if not cookie_header or not name:
        return False
    cookies = SimpleCookie()
    try:
        cookies.load(cookie_header)
    except CookieError:
        return False
    return name in cookies


def signal_from_environ(
    environ: Mapping[str, str],
    login_cookie: str | None = None,
    upstream_verdict: bool | None = None,
) -> RequestSignal:
    """Build a RequestSignal from a WSGI environ.

    Uses REQUEST_URI when the server provides it, else PATH_INFO and
    QUERY_STRING. A request without either yields a signal with no path.
    Presence of *login_cookie* only signals a login; it is not verified.
    """
    raw_target = environ.get("REQUEST_URI")
    if raw_target is None and "PATH_INFO" in environ:
        raw_target = environ.get("SCRIPT_NAME", "") + environ["PATH_INFO"]
        if environ.get("QUERY_STRING"):
            raw_target += "?" + environ["QUERY_STRING"]

    query_path = None
    query = environ.get("QUERY_STRING", "")
    if query:
        values = parse_qs(query).get(REWRITE_PARAM)
        if values:
            query_path = values[0]

    host = environ.get("HTTP_HOST") or environ.get("SERVER_NAME", "")

    return RequestSignal(
        path=raw_target,
        host=host,
        has_login_credential=has_cookie(environ.get("HTTP_COOKIE", ""), login_cookie or ""),
        upstream_verdict=upstream_verdict,
        query_path=query_path,
    )
