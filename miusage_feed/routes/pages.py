"""HTML routes: admin page and embeddable table widget."""

import asyncio
import html
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse

from miusage_feed.dependencies import get_coordinator
from miusage_feed.errors import FetchError
from miusage_feed.presentation import human_time_diff, render_table
from miusage_feed.security import REFRESH_CAPABILITY, Identity, create_nonce, get_identity
from miusage_feed.services.coordinator import DataCoordinator

logger = logging.getLogger(__name__)

router = APIRouter()

CLI_COMMAND = "miusage-feed refresh"


@router.get("/admin", response_class=HTMLResponse)
async def admin_page(
    coordinator: DataCoordinator = Depends(get_coordinator),
    identity: Identity | None = Depends(get_identity),
) -> HTMLResponse:
    """Admin view: data table, cache age, refresh button, setup info."""
    if identity is None or not identity.can(REFRESH_CAPABILITY):
        return HTMLResponse(
            "<p>You do not have sufficient permissions to access this page.</p>",
            status_code=403,
        )

    try:
        data = await asyncio.to_thread(coordinator.get_data)
        body = f'<div id="miusage-data-container">{render_table(data)}</div>'
    except FetchError as e:
        body = (
            '<div class="notice notice-error"><p><strong>Error:</strong> '
            f"{html.escape(e.message)}</p></div>"
        )

    info = coordinator.get_cache_info()
    updated = (
        f'<span class="miusage-cache-info">Last updated: {human_time_diff(info.age)} ago</span>'
        if info.has_cache
        else ""
    )
    pending = (
        '<span class="miusage-refresh-pending">Refresh pending</span>'
        if coordinator.is_refresh_pending()
        else ""
    )
    nonce = create_nonce(identity.user_id)
    endpoint = html.escape(coordinator.fetcher.endpoint)

    page = f"""<!doctype html>
<html><head><meta charset="utf-8"><title>miusage Data</title></head>
<body><div class="wrap miusage-wrap">
<h1>miusage Data</h1>
<p>View and manage data retrieved from the external API</p>
<div class="miusage-card">
<h2>API Data</h2>
<div class="miusage-actions">{updated}{pending}
<button type="button" id="miusage-refresh" data-nonce="{nonce}" data-url="/api/refresh">Refresh Data</button>
</div>
{body}
</div>
<div class="miusage-card miusage-info-card">
<h2>Information</h2>
<dl>
<dt>API Endpoint:</dt><dd><code>{endpoint}</code></dd>
<dt>Cache Duration:</dt><dd>{human_time_diff(coordinator.ttl)}</dd>
<dt>CLI Command:</dt><dd><code>{CLI_COMMAND}</code></dd>
</dl>
</div>
</div></body></html>"""
    return HTMLResponse(page)


@router.get("/widget", response_class=HTMLResponse)
async def widget(
    columns: str | None = Query(None, description="Comma separated column keys to show"),
    show_header: bool = Query(True),
    coordinator: DataCoordinator = Depends(get_coordinator),
) -> HTMLResponse:
    """Embeddable table fragment. Errors render as a short message, not the error detail."""
    wanted = [c.strip() for c in columns.split(",") if c.strip()] if columns else None
    try:
        data = await asyncio.to_thread(coordinator.get_data)
    except FetchError as e:
        logger.warning("Widget could not load data: %s", e.message)
        return HTMLResponse(
            '<div class="miusage-widget miusage-error">Error loading data</div>',
            status_code=500,
        )

    table = render_table(data, columns=wanted, show_header=show_header)
    return HTMLResponse(f'<div class="miusage-widget">{table}</div>')
