"""Тесты извлечения полей по CSS-схеме."""
import pytest

PAGE = """
<html><body>
  <h1>  Hello World  </h1>
  <div class="content"><p>First <b>bold</b></p></div>
  <a class="link" href="/one">One</a>
  <a class="link" href="/two"> TWO </a>
  <a class="link" href="/empty">   </a>
  <span class="tag badge">x</span>
</body></html>
"""


def _spec(**kwargs):
    from scrapeworker.models.task import FieldSpec

    return FieldSpec(**kwargs)


class TestExtract:
    def test_text_is_stripped(self) -> None:
        from scrapeworker.scraping.extractor import extract

        assert extract(PAGE, {"title": _spec(selector="h1")}) == {"title": "Hello World"}

    def test_text_takes_first_match(self) -> None:
        from scrapeworker.scraping.extractor import extract

        assert extract(PAGE, {"link": _spec(selector="a.link")})["link"] == "One"

    @pytest.mark.parametrize("transform,expected", [
        ("lowercase", "hello world"),
        ("uppercase", "HELLO WORLD"),
        ("trim", "Hello World"),
        ("reverse", "Hello World"),
    ])
    def test_transforms(self, transform: str, expected: str) -> None:
        from scrapeworker.scraping.extractor import extract

        data = extract(PAGE, {"title": _spec(selector="h1", transform=transform)})
        assert data["title"] == expected

    def test_html_is_inner_markup(self) -> None:
        from scrapeworker.scraping.extractor import extract

        data = extract(PAGE, {"content": _spec(selector=".content", type="html")})
        assert data["content"] == "<p>First <b>bold</b></p>"

    def test_attr(self) -> None:
        from scrapeworker.scraping.extractor import extract

        data = extract(PAGE, {"href": _spec(selector="a.link", type="attr", attr="href")})
        assert data["href"] == "/one"

    def test_multi_valued_attr_joined(self) -> None:
        from scrapeworker.scraping.extractor import extract

        data = extract(PAGE, {"cls": _spec(selector="span", type="attr", attr="class")})
        assert data["cls"] == "tag badge"

    def test_list_skips_empty_items(self) -> None:
        from scrapeworker.scraping.extractor import extract

        data = extract(PAGE, {"links": _spec(selector="a.link", type="list", transform="lowercase")})
        assert data["links"] == ["one", "two"]

    def test_list_without_matches_is_empty(self) -> None:
        from scrapeworker.scraping.extractor import extract

        assert extract(PAGE, {"items": _spec(selector="li", type="list")})["items"] == []


class TestPerFieldTolerance:
    """Ошибка одного поля → None только для него."""

    def test_missing_element_is_none(self) -> None:
        from scrapeworker.scraping.extractor import extract

        data = extract(PAGE, {
            "title": _spec(selector="h1"),
            "price": _spec(selector=".price"),
        })
        assert data == {"title": "Hello World", "price": None}

    def test_missing_attr_is_none(self) -> None:
        from scrapeworker.scraping.extractor import extract

        data = extract(PAGE, {
            "alt": _spec(selector="h1", type="attr", attr="alt"),
            "no_attr": _spec(selector="h1", type="attr"),
        })
        assert data == {"alt": None, "no_attr": None}

    def test_unknown_type_is_none(self) -> None:
        from scrapeworker.scraping.extractor import extract

        data = extract(PAGE, {
            "weird": _spec(selector="h1", type="json"),
            "title": _spec(selector="h1"),
        })
        assert data == {"weird": None, "title": "Hello World"}

    def test_invalid_selector_is_none(self) -> None:
        from scrapeworker.scraping.extractor import extract

        data = extract(PAGE, {"bad": _spec(selector="a[["), "title": _spec(selector="h1")})
        assert data == {"bad": None, "title": "Hello World"}

    def test_keys_follow_schema(self) -> None:
        from scrapeworker.scraping.extractor import extract

        schema = {name: _spec(selector=".nothing") for name in ("c", "a", "b")}
        assert list(extract(PAGE, schema)) == ["c", "a", "b"]

    def test_invalid_field_config_is_none(self) -> None:
        from scrapeworker.models.task import ScrapeTask
        from scrapeworker.scraping.extractor import extract

        task = ScrapeTask.from_message({
            "task_id": "t1",
            "url": "https://example.com",
            "schema": {"title": {"selector": "h1"}, "bad": {"type": "text"}},
        })

        assert extract(PAGE, task.extraction_schema) == {"title": "Hello World", "bad": None}
