"""
HTML pages: Jinja2 templates under app/templates, shared by both services.
"""
from pathlib import Path

from fastapi import Request
from fastapi.templating import Jinja2Templates

APP_TITLE = "Google S3 Uploader"
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
STATIC_DIR = Path(__file__).resolve().parent / "static"


def format_file_size(size: int | None) -> str:
    """1536 -> '1.5 KB'. Binary units."""
    if size is None:
        return ""
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}B"


templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["filesize"] = format_file_size
templates.env.globals["app_title"] = APP_TITLE


def render(request: Request, name: str, status_code: int = 200, **context):
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def render_error(request: Request, status_code: int, message: str):
    """Generic error page; message must already be safe to show."""
    return render(
        request,
        "error.html",
        status_code=status_code,
        title="Error",
        status=status_code,
        message=message,
    )
