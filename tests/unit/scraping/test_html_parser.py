from tagscope.scraping.parser.html_parser import HtmlParser


def test_extract_title():
    html = "<html><head><title> My Page </title></head><body></body></html>"
    parser = HtmlParser(html, "https://example.com")
    assert parser.extract_title() == "My Page"


def test_extract_title_missing():
    parser = HtmlParser("<html><body><h1>Heading</h1></body></html>", "https://example.com")
    assert parser.extract_title() is None


def test_extract_links():
    html = """
    <html><body>
    <a href="/blog/post-1">Post 1</a>
    <a href="/blog/post-1">Post 1 again</a>
    <a href="post-2">Post 2</a>
    <a href="mailto:test@test.com">Email</a>
    <a href="#section">Anchor</a>
    </body></html>
    """
    parser = HtmlParser(html, "https://example.com/blog/")
    assert parser.extract_links() == [
        "https://example.com/blog/post-1",
        "https://example.com/blog/post-2",
    ]


def test_count_menu_links(homepage_with_links_html):
    parser = HtmlParser(homepage_with_links_html, "https://example.test/")
    assert parser.count_menu_links() == 10


def test_empty_document():
    parser = HtmlParser("", "https://example.com")
    assert parser.extract_links() == []
    assert parser.extract_title() is None


def test_extract_links_skips_unresolvable_href():
    html = '<a href="/about">About</a><a href="http://[broken/">x</a><a href="/contact">Contact</a>'
    parser = HtmlParser(html, "https://example.test/")
    assert parser.extract_links() == [
        "https://example.test/about",
        "https://example.test/contact",
    ]
