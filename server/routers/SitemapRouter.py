from urllib.parse import quote
from xml.sax.saxutils import escape

from fastapi import APIRouter, Request, Response

router = APIRouter(tags=["sitemap"])


def build_sitemap(base_url: str, references: list[str]) -> str:
    """Render the sitemap: site root, chat page, then one entry per book."""
    base_url = base_url.rstrip("/")
    entries = [
        (f"{base_url}/", "1.0"),
        (f"{base_url}/chat", "0.5"),
    ]
    entries += [(f"{base_url}/book/{quote(reference)}", "0.8") for reference in references]
    urls = "".join(
        f"  <url>\n    <loc>{escape(loc)}</loc>\n    <priority>{priority}</priority>\n  </url>\n"
        for loc, priority in entries
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{urls}"
        "</urlset>\n"
    )


@router.get("/sitemap.xml")
async def sitemap(request: Request) -> Response:
    helper_config = request.app.state.helper_config
    base_url = helper_config.get_string_val("APP_PUBLIC_URL", default="http://localhost:8000")
    references = await request.app.state.query_service.do_list_references()
    return Response(
        content=build_sitemap(base_url, [book.reference for book in references]),
        media_type="application/xml",
    )
