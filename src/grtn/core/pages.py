"""HTML pages served by the redirector.

Plain f-string renderers with no template engine, so the failure page can
always be produced. Every interpolated value goes through ``_esc``.
"""

import html
from collections.abc import Iterable

from grtn.core.routing import RouteMatch

_STYLE = """\
body { font-family: system-ui, sans-serif; max-width: 40rem; margin: 3rem auto; padding: 0 1rem; line-height: 1.5; color: #222; }
h1 { font-size: 1.4rem; }
ul { padding-left: 1.2rem; }
li { margin: 0.6rem 0; }
.definition { font-size: 0.85rem; color: #666; }
details { margin-top: 1.5rem; }
pre { background: #f4f4f4; padding: 0.8rem; overflow-x: auto; white-space: pre-wrap; }
"""


def _esc(text: str) -> str:
    """HTML-escape a string."""
    return html.escape(str(text), quote=True)


def _document(title: str, body: str, head: str = "") -> str:
    return (
        "<!DOCTYPE html>"
        '<html lang="en">'
        "<head>"
        '<meta charset="utf-8">'
        '<meta name="viewport" content="width=device-width, initial-scale=1">'
        f"<title>{_esc(title)}</title>"
        f"{head}"
        f"<style>{_STYLE}</style>"
        "</head>"
        f"<body>{body}</body>"
        "</html>"
    )


def render_redirect_page(target: str) -> str:
    """Body sent with a 302 for clients that ignore the Location header."""
    return _document(
        "Redirecting…",
        f'<p>Redirecting to <a href="{_esc(target)}">{_esc(target)}</a>…</p>',
        head=f'<meta http-equiv="refresh" content="0; url={_esc(target)}">',
    )


def render_ambiguous_page(path: str, candidates: Iterable[RouteMatch]) -> str:
    """Let a human pick among several routes defined for the same path."""
    items = "".join(
        f"<li>"
        f'<a href="{_esc(match.target)}">{_esc(match.target)}</a>'
        f'<div class="definition">defined in '
        f'<a href="{_esc(match.definition)}">{_esc(match.definition)}</a></div>'
        f"</li>"
        for match in candidates
    )
    return _document(
        "Multiple destinations",
        f"<h1>{_esc(path)} has more than one destination</h1>"
        f"<p>Choose where you want to go:</p>"
        f"<ul>{items}</ul>",
    )


def render_not_found_page() -> str:
    return _document("Not found", "<h1>Not found</h1>")


def render_error_page(exc: BaseException, correlation_id: str | None = None) -> str:
    """Uniform failure page; exception text only under technical details."""
    reference = ""
    if correlation_id:
        reference = f"<p>Reference: <code>{_esc(correlation_id)}</code></p>"
    return _document(
        "Something went wrong",
        "<h1>Something went wrong</h1>"
        "<p>We could not resolve this link right now. Please try again later.</p>"
        f"{reference}"
        "<details><summary>Technical details</summary>"
        f"<pre>{_esc(f'{type(exc).__name__}: {exc}')}</pre>"
        "</details>",
    )
