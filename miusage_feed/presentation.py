"""Rendering helpers shared by the admin page, the widget and the CLI.

Payloads are untrusted. Anything going back out as JSON goes through
``sanitize_payload``; anything going into HTML goes through ``html.escape``.
"""

import html
import json
import re
from typing import Any

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def sanitize_text(value: str) -> str:
    """Strip tags, collapse whitespace and trim, like a form text field."""
    return _WS_RE.sub(" ", _TAG_RE.sub("", value)).strip()


def sanitize_payload(data: Any) -> Any:
    """Recursively sanitize every string in a JSON-like value."""
    if isinstance(data, dict):
        return {sanitize_text(str(k)): sanitize_payload(v) for k, v in data.items()}
    if isinstance(data, list):
        return [sanitize_payload(v) for v in data]
    if isinstance(data, str):
        return sanitize_text(data)
    if data is None or isinstance(data, (bool, int, float)):
        return data
    return sanitize_text(str(data))


def humanize_key(key: str) -> str:
    """``first_name`` → ``First Name``."""
    return " ".join(word[:1].upper() + word[1:] for word in str(key).replace("_", " ").split(" "))


def human_time_diff(seconds: float) -> str:
    """Approximate a duration the way people say it: ``1 hour``, ``59 mins``."""
    seconds = max(0, int(seconds))
    for size, singular, plural in (
        (86400, "day", "days"),
        (3600, "hour", "hours"),
        (60, "min", "mins"),
    ):
        if seconds >= size:
            count = max(1, round(seconds / size))
            return f"{count} {singular if count == 1 else plural}"
    count = max(1, seconds)
    return f"{count} {'second' if count == 1 else 'seconds'}"


def is_record_list(data: Any) -> bool:
    return isinstance(data, list) and bool(data) and isinstance(data[0], dict)


def item_count(data: Any) -> int:
    if isinstance(data, (dict, list)):
        return len(data)
    return 1


def _cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return f"<code>{html.escape(json.dumps(value, indent=4))}</code>"
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return html.escape(str(value))


def render_table(
    data: Any,
    columns: list[str] | None = None,
    show_header: bool = True,
    css_class: str = "miusage-table",
) -> str:
    """Render a payload as an HTML table.

    A list of records becomes one row per record with headers taken from the
    first record's keys (optionally filtered by ``columns``). Anything else
    becomes key/value rows. Nested aggregates are shown as pretty JSON.
    """
    if not data:
        return '<p class="miusage-no-data">No data available.</p>'

    if is_record_list(data):
        headers = list(data[0].keys())
        if columns:
            headers = [h for h in headers if h in columns]
        parts = [f'<table class="{css_class}">']
        if show_header:
            parts.append("<thead><tr>")
            parts.extend(f"<th>{html.escape(humanize_key(h))}</th>" for h in headers)
            parts.append("</tr></thead>")
        parts.append("<tbody>")
        for row in data:
            cells = "".join(
                f"<td>{_cell(row.get(h, '') if isinstance(row, dict) else '')}</td>"
                for h in headers
            )
            parts.append(f"<tr>{cells}</tr>")
        parts.append("</tbody></table>")
        return "".join(parts)

    items = data.items() if isinstance(data, dict) else enumerate(data)
    rows = "".join(
        f"<tr><th>{html.escape(humanize_key(str(k)))}</th><td>{_cell(v)}</td></tr>"
        for k, v in items
        if not columns or str(k) in columns
    )
    return f'<table class="{css_class} miusage-table-single"><tbody>{rows}</tbody></table>'
