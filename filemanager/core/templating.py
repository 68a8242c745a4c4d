# filemanager/core/templating.py
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi.templating import Jinja2Templates

from filemanager.core.filetypes import icon_for

BASE_DIR = Path(__file__).resolve().parent.parent
TEMPLATES_DIR = BASE_DIR / "templates"


def format_datetime(value: Optional[datetime], default: str = "Never") -> str:
    if value is None:
        return default
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def breadcrumbs(path: str):
    """(label, path) pairs from the root down to ``path``."""
    crumbs = []
    current = ""
    for part in [p for p in (path or "").split("/") if p]:
        current = f"{current}/{part}" if current else part
        crumbs.append((part, current))
    return crumbs


templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["datetime"] = format_datetime
templates.env.filters["urlquote"] = lambda value: quote(value or "", safe="")
templates.env.filters["pathquote"] = lambda value: quote(value or "")
templates.env.globals["breadcrumbs"] = breadcrumbs
templates.env.globals["icon_for"] = icon_for
