from __future__ import annotations

from webscraper.crawler.parsers import HTMLPageParser, HTMLPageParserConfig
from webscraper.crawler.types import SlotKind

BASE = "https://ex.com/shop/"

HTML = """
<html>
  <head>
    <title>Shop home</title>
    <meta name="description" content="Hand made widgets">
  </head>
  <body>
    <h1>Widgets</h1>
    <p class="price">20 EUR</p>
    <p class="price">35 EUR</p>
    <p>This paragraph is long enough to be kept in the default content map.</p>
    <a href="/about">About us</a>
    <a href="item/1">Item one</a>
    <a href="item/1#reviews">Item one reviews</a>
    <a href="mailto:shop@ex.com">Mail</a>
    <ul class="menu">
      <li><a href="/cat/a">Category A</a></li>
      <li><a href="/cat/b">Category B</a></li>
    </ul>
    <div class="grid"><a href="/grid/1">Grid</a></div>
    <dl><dt><a href="/glossary">Glossary</a></dt><dd>terms</dd></dl>
    <img src="/img/a.png" alt="A">
    <img data-src="//cdn.ex.com/b.png">
    <img src="/img/a.png" alt="duplicate">
  </body>
</html>
"""


def _parser() -> HTMLPageParser:
    return HTMLPageParser(HTMLPageParserConfig(use_trafilatura=False))


def test_selectors_fill_one_slot_each():
    page = _parser().parse(url=BASE, html=HTML, selectors=[".price", "h1", ".missing"])

    assert list(page.content) == [".price", "h1", ".missing"]
    assert [node.text for node in page.content[".price"].nodes] == ["20 EUR", "35 EUR"]
    assert page.content[".missing"].kind == SlotKind.NODES
    assert page.content[".missing"].nodes == ()


def test_malformed_selector_only_fails_its_own_slot():
    page = _parser().parse(url=BASE, html=HTML, selectors=["h1", "p[unclosed", ".price"])

    assert page.content["p[unclosed"].is_error
    assert page.content["p[unclosed"].error
    assert page.content["h1"].text() == "Widgets"
    assert page.content[".price"].text() == "20 EUR 35 EUR"


def test_links_are_absolute_deduplicated_and_keep_anchor_text():
    page = _parser().parse(url=BASE, html=HTML)
    urls = [link.url for link in page.links]

    assert urls[:2] == ["https://ex.com/about", "https://ex.com/shop/item/1"]
    assert urls.count("https://ex.com/shop/item/1") == 1
    assert not any(url.startswith("mailto:") for url in urls)
    assert page.links[0].text == "About us"


def test_images_resolve_src_and_data_src():
    page = _parser().parse(url=BASE, html=HTML)

    assert [image.src for image in page.images] == [
        "https://ex.com/img/a.png",
        "https://cdn.ex.com/b.png",
    ]
    assert page.images[0].alt == "A"


def test_list_links_cover_default_lists_and_extra_selectors():
    default = _parser().parse(url=BASE, html=HTML)
    assert default.list_links == [
        "https://ex.com/cat/a",
        "https://ex.com/cat/b",
        "https://ex.com/glossary",
    ]

    extended = _parser().parse(url=BASE, html=HTML, list_selectors=[".grid"])
    assert "https://ex.com/grid/1" in extended.list_links


def test_default_content_map_without_selectors():
    page = _parser().parse(url=BASE, html=HTML, status_code=200, content_type="text/html")

    assert page.ok
    assert page.title == "Shop home"
    assert page.content["meta_description"].value == "Hand made widgets"
    assert page.content["h1"].text() == "Widgets"
    assert [node.text for node in page.content["paragraphs"].nodes] == [
        "This paragraph is long enough to be kept in the default content map."
    ]
    assert "Widgets" in page.content["text"].text()


def test_bytes_input_and_missing_title_fall_back_to_heading():
    page = _parser().parse(url=BASE, html=b"<html><body><h2>Fallback</h2></body></html>")
    assert page.title == "Fallback"
