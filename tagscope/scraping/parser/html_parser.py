from urllib.parse import urljoin

from selectolax.parser import HTMLParser

_MENU_SELECTORS = ["nav a[href]", "header a[href]", ".menu a[href]", ".nav a[href]", "[role='navigation'] a[href]"]


class HtmlParser:
    """Page-level helpers over selectolax: title, links and navigation size."""

    def __init__(self, html: str, base_url: str):
        self.tree = HTMLParser(html or "")
        self.base_url = base_url

    def extract_title(self) -> str | None:
        title_tag = self.tree.css_first("title")
        if title_tag and title_tag.text():
            return title_tag.text().strip()
        return None

    def extract_links(self, selectors: list[str] | None = None) -> list[str]:
        """Absolute hrefs in document order, de-duplicated."""
        selectors = selectors or ["a[href]"]
        urls: list[str] = []

        for selector in selectors:
            for node in self.tree.css(selector):
                href = node.attributes.get("href")
                if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
                    continue
                try:
                    urls.append(urljoin(self.base_url, href.strip()))
                except ValueError:
                    # Unresolvable href, e.g. an unterminated IPv6 host
                    continue

        return list(dict.fromkeys(urls))

    def count_menu_links(self) -> int:
        return len(self.extract_links(_MENU_SELECTORS))
