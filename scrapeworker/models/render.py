"""Рендеринг ScrapeResult в форматы выдачи: JSON, HTML, Markdown, XML, CSV.

Все функции чистые и детерминированные: порядок полей данных совпадает
с порядком полей схемы извлечения.
"""
import csv
import html
import io
import re
from collections.abc import Callable
from typing import Any

from scrapeworker.models.result import ScrapeResult, TaskStatus

_HUMAN_TS = "%Y-%m-%d %H:%M:%S"
_XML_TAG_INVALID = re.compile(r"[^A-Za-z0-9_.-]")


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(_format_value(v) for v in value)
    return str(value)


def _xml_tag(name: str) -> str:
    """Имя поля → валидное имя XML-тега."""
    tag = _XML_TAG_INVALID.sub("_", name) or "field"
    if not (tag[0].isalpha() or tag[0] == "_"):
        tag = f"_{tag}"
    return tag


def _cdata(value: str) -> str:
    # "]]>" внутри значения разбиваем на две CDATA-секции
    return "<![CDATA[" + value.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def to_json(result: ScrapeResult) -> str:
    return result.to_json()


def to_html(result: ScrapeResult) -> str:
    e = html.escape
    status_class = "success" if result.status == TaskStatus.COMPLETED else "error"
    parts = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        f"    <title>Scraping Result - {e(result.task_id)}</title>",
        "    <style>",
        "        body { font-family: Arial, sans-serif; margin: 20px; }",
        "        .header { background: #f0f0f0; padding: 10px; border-radius: 5px; }",
        "        .field { margin: 10px 0; padding: 10px; border-left: 3px solid #007acc; }",
        "        .field-name { font-weight: bold; color: #007acc; }",
        "        .error { color: red; }",
        "        .success { color: green; }",
        "    </style>",
        "</head>",
        "<body>",
        '    <div class="header">',
        "        <h1>Scraping Result</h1>",
        f"        <p><strong>Task ID:</strong> {e(result.task_id)}</p>",
        f'        <p><strong>URL:</strong> <a href="{e(result.url)}" target="_blank">{e(result.url)}</a></p>',
        f'        <p><strong>Status:</strong> <span class="{status_class}">{e(result.status.value)}</span></p>',
        f"        <p><strong>Timestamp:</strong> {result.timestamp.strftime(_HUMAN_TS)}</p>",
        f"        <p><strong>Duration:</strong> {result.duration}ms</p>",
        f"        <p><strong>Cost:</strong> ${result.cost:.4f}</p>",
    ]
    if result.error:
        parts.append(f'        <p><strong>Error:</strong> <span class="error">{e(result.error)}</span></p>')
    parts += ["    </div>", '    <div class="data">', "        <h2>Extracted Data</h2>"]
    for key, value in (result.data or {}).items():
        parts += [
            '        <div class="field">',
            f'            <div class="field-name">{e(key)}:</div>',
            f'            <div class="field-value">{e(_format_value(value))}</div>',
            "        </div>",
        ]
    parts += ["    </div>", "</body>", "</html>"]
    return "\n".join(parts) + "\n"


def to_markdown(result: ScrapeResult) -> str:
    lines = [
        "# Scraping Result",
        "",
        "## Metadata",
        f"- **Task ID:** {result.task_id}",
        f"- **URL:** [{result.url}]({result.url})",
        f"- **Status:** {result.status.value}",
        f"- **Timestamp:** {result.timestamp.strftime(_HUMAN_TS)}",
        f"- **Duration:** {result.duration}ms",
        f"- **Cost:** ${result.cost:.4f}",
    ]
    if result.error:
        lines.append(f"- **Error:** {result.error}")
    lines += ["", "## Extracted Data", ""]
    for key, value in (result.data or {}).items():
        lines += [f"### {key}", ""]
        if isinstance(value, list):
            lines += [f"- {item}" for item in value]
        else:
            lines.append(_format_value(value))
        lines.append("")
    return "\n".join(lines)


def to_xml(result: ScrapeResult) -> str:
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        "<scrapingResult>",
        "    <metadata>",
        f"        <taskId>{html.escape(result.task_id)}</taskId>",
        f"        <url>{html.escape(result.url)}</url>",
        f"        <status>{result.status.value}</status>",
        f"        <timestamp>{result.timestamp.isoformat()}</timestamp>",
        f"        <duration>{result.duration}</duration>",
        f"        <cost>{result.cost:.4f}</cost>",
    ]
    if result.error:
        lines.append(f"        <error>{_cdata(result.error)}</error>")
    lines += ["    </metadata>", "    <data>"]
    for key, value in (result.data or {}).items():
        tag = _xml_tag(key)
        if isinstance(value, list):
            items = "".join(f"<item>{_cdata(_format_value(v))}</item>" for v in value)
            lines.append(f"        <{tag}>{items}</{tag}>")
        else:
            lines.append(f"        <{tag}>{_cdata(_format_value(value))}</{tag}>")
    lines += ["    </data>", "</scrapingResult>"]
    return "\n".join(lines) + "\n"


def to_csv(result: ScrapeResult) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["Field", "Value"])
    writer.writerow(["task_id", result.task_id])
    writer.writerow(["url", result.url])
    writer.writerow(["status", result.status.value])
    writer.writerow(["timestamp", result.timestamp.isoformat()])
    writer.writerow(["duration", result.duration])
    writer.writerow(["cost", f"{result.cost:.4f}"])
    if result.error:
        writer.writerow(["error", result.error])
    for key, value in (result.data or {}).items():
        writer.writerow([key, _format_value(value)])
    return buf.getvalue()


# формат → (рендерер, content-type, расширение)
RENDERERS: dict[str, tuple[Callable[[ScrapeResult], str], str, str]] = {
    "json": (to_json, "application/json", "json"),
    "html": (to_html, "text/html; charset=utf-8", "html"),
    "md": (to_markdown, "text/markdown; charset=utf-8", "md"),
    "xml": (to_xml, "application/xml", "xml"),
    "csv": (to_csv, "text/csv; charset=utf-8", "csv"),
}
_FORMAT_ALIASES = {"markdown": "md", "htm": "html"}


def normalize_format(output_format: str | None) -> str:
    """Нормализовать имя формата. Неизвестный формат → json."""
    fmt = (output_format or "json").strip().lower()
    fmt = _FORMAT_ALIASES.get(fmt, fmt)
    return fmt if fmt in RENDERERS else "json"


def render_result(result: ScrapeResult, output_format: str | None) -> tuple[bytes, str, str]:
    """Вернуть (body, content_type, extension) для заданного формата."""
    renderer, content_type, extension = RENDERERS[normalize_format(output_format)]
    return renderer(result).encode("utf-8"), content_type, extension
