"""
Maintenance window: the app_offline.htm marker at the remote root
"""
import html

from ..utils.paths import join_smb
from .delete import delete_file
from .transfer import upload_bytes

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{meta_title}</title>
    <style>
        body {{ font-family: -apple-system, "Segoe UI", Roboto, Helvetica, Arial, sans-serif; margin: 0; padding: 4rem 2rem; color: #222; background: #f7f7f7; }}
        main {{ max-width: 40rem; margin: 0 auto; }}
        h1 {{ font-size: 2rem; font-weight: 600; }}
    </style>
</head>
<body>
<main>
    <h1>{page_title}</h1>
    {content_html}
</main>
</body>
</html>
"""


def render_offline_page(settings) -> str:
    """Titles are escaped; content_html is inserted as-is."""
    return _PAGE_TEMPLATE.format(
        meta_title=html.escape(settings.meta_title),
        page_title=html.escape(settings.page_title),
        content_html=settings.content_html,
    )


def marker_path(config) -> str:
    return join_smb(config.paths.remote_root_path, config.offline.marker_file_name)


def take_offline(session, config, ctx) -> bool:
    """Write the marker, then give in-flight requests server_offline_delay_seconds to drain."""
    if not config.take_server_offline:
        return True
    ctx.status("Taking website offline...")
    page = render_offline_page(config.offline).encode("utf-8")
    if not upload_bytes(session, marker_path(config), page, config, ctx):
        return False
    delay = config.server_offline_delay_seconds
    if delay > 0:
        ctx.status(f"Taking website offline... waiting {delay:g}s")
        return ctx.wait(delay)
    return not ctx.cancelled()


def bring_online(session, config, ctx) -> bool:
    if not config.take_server_offline:
        return True
    delay = config.server_online_delay_seconds
    if delay > 0:
        ctx.status(f"Bringing website online... waiting {delay:g}s")
        if not ctx.wait(delay):
            return False
    ctx.status("Bringing website online...")
    return delete_file(session, marker_path(config), config, ctx)
