"""
HTML parser for extracting visible text, titles and same-domain links.
"""

import re
import logging
from typing import Optional, Set
from urllib.parse import urljoin, urlparse
from bs4 import BeautifulSoup, Comment


# Extensions of documents, archives, images and other non-HTML resources
SKIP_EXTENSIONS = (
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.svg', '.webp', '.ico',
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx', '.odt', '.rtf',
    '.zip', '.rar', '.7z', '.tar', '.gz', '.exe', '.dmg', '.iso',
    '.mp3', '.mp4', '.avi', '.mov', '.wmv', '.flv',
    '.css', '.js', '.woff', '.woff2', '.ttf', '.eot'
)


class ContentParser:
    """
    Parses HTML to extract visible text, the page title and crawlable links.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.whitespace_pattern = re.compile(r'\s+')

    def extract_links(self, html_content: str, base_url: str) -> Set[str]:
        """Absolute same-host links of a document; invalid links are dropped."""
        soup = self._make_soup(html_content)
        if soup is None:
            return set()
        return self._links(soup, base_url)

    def extract_text(self, html_content: str) -> str:
        """Visible text of a document with whitespace collapsed."""
        soup = self._make_soup(html_content)
        if soup is None:
            return ''
        return self._visible_text(soup)

    def extract_title(self, html_content: str) -> str:
        """Contents of the ``<title>`` element, or an empty string."""
        soup = self._make_soup(html_content)
        if soup is None:
            return ''
        return self._title(soup)

    def _make_soup(self, html_content: Optional[str]) -> Optional[BeautifulSoup]:
        if not html_content:
            return None
        try:
            return BeautifulSoup(html_content, 'lxml')
        except (ValueError, TypeError) as e:
            self.logger.error(f"Error parsing HTML: {e}")
            return None

    def _title(self, soup: BeautifulSoup) -> str:
        title_tag = soup.find('title')
        if title_tag:
            return self._clean_text(title_tag.get_text())
        return ''

    def _visible_text(self, soup: BeautifulSoup) -> str:
        for script in soup(["script", "style", "noscript", "template"]):
            script.decompose()

        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

        return self._clean_text(soup.get_text(separator=' '))

    def _links(self, soup: BeautifulSoup, base_url: str) -> Set[str]:
        links = set()

        for link in soup.find_all('a', href=True):
            href = link['href'].strip()
            if not href:
                continue

            try:
                absolute_url = urljoin(base_url, href)
            except ValueError:
                continue

            if self.is_valid_link(absolute_url, base_url):
                links.add(absolute_url)

        return links

    def is_valid_link(self, url: str, base_url: str) -> bool:
        """Check if a link is crawlable from ``base_url``."""
        if not url or '#' in url:
            return False

        try:
            parsed = urlparse(url)
            parsed_base = urlparse(base_url)

            if parsed.scheme not in ('http', 'https'):
                return False

            if not parsed.hostname or parsed.hostname != parsed_base.hostname:
                return False

            path = parsed.path.lower()
            return not path.endswith(SKIP_EXTENSIONS)

        except ValueError:
            return False

    def _clean_text(self, text: str) -> str:
        if not text:
            return ""
        return self.whitespace_pattern.sub(' ', text).strip()
