"""Извлечение полей из HTML по схеме (CSS-селекторы BeautifulSoup)."""
from collections.abc import Mapping
from typing import Any

from bs4 import BeautifulSoup, Tag
from loguru import logger

from scrapeworker.models.task import FieldSpec

PARSER = "html.parser"


class FieldExtractionError(ValueError):
    """Поле не удалось извлечь — в результате оно будет null."""


def apply_transform(text: str, transform: str | None) -> str:
    """Трансформация строки: lowercase / uppercase / trim. Неизвестная — no-op."""
    if transform == "lowercase":
        return text.lower()
    if transform == "uppercase":
        return text.upper()
    if transform == "trim":
        return text.strip()
    return text


def _first(soup: BeautifulSoup, selector: str) -> Tag:
    node = soup.select_one(selector)
    if node is None:
        raise FieldExtractionError(f"no elements found for selector: {selector}")
    return node


def extract_field(soup: BeautifulSoup, spec: FieldSpec) -> Any:
    """Извлечь одно поле. Бросает FieldExtractionError."""
    kind = spec.type or "text"

    if kind == "text":
        text = _first(soup, spec.selector).get_text().strip()
        return apply_transform(text, spec.transform)

    if kind == "html":
        return _first(soup, spec.selector).decode_contents()

    if kind == "attr":
        if not spec.attr:
            raise FieldExtractionError("attr is required for attribute extraction")
        value = _first(soup, spec.selector).get(spec.attr)
        if value is None:
            raise FieldExtractionError(f"attribute {spec.attr} not found")
        # class и подобные multi-valued атрибуты bs4 отдаёт списком
        return " ".join(value) if isinstance(value, list) else value

    if kind == "list":
        items: list[str] = []
        for node in soup.select(spec.selector):
            text = node.get_text().strip()
            if text:
                items.append(apply_transform(text, spec.transform))
        return items

    raise FieldExtractionError(f"unsupported field type: {kind}")


def extract(markup: str, schema: Mapping[str, FieldSpec | None]) -> dict[str, Any]:
    """
    Извлечь все поля схемы. Ошибка одного поля → None только для него,
    остальные поля извлекаются как обычно. Поле без валидного описания (None) тоже null.
    """
    soup = BeautifulSoup(markup, PARSER)
    result: dict[str, Any] = {}
    for name, spec in schema.items():
        try:
            if spec is None:
                raise FieldExtractionError("invalid field config")
            result[name] = extract_field(soup, spec)
        except FieldExtractionError as e:
            logger.warning(f"[extract] Field '{name}': {e}")
            result[name] = None
        except Exception as e:
            # битый CSS-селектор (soupsieve.SelectorSyntaxError) и т.п.
            logger.warning(f"[extract] Field '{name}' failed ({type(e).__name__}): {e}")
            result[name] = None
    return result
