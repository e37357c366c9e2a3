"""
Input sanitization for user-generated content.

HTML goes through an allow-list built on BeautifulSoup; plain text is
entity-escaped so it can be rendered without further escaping.
"""
import re
import uuid
from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Comment
from django.utils.html import escape

ALLOWED_TAGS = frozenset([
    "b", "i", "em", "strong", "a", "p", "br", "ul", "ol", "li", "blockquote", "code", "pre",
])
ALLOWED_ATTRS = frozenset(["href", "title", "target"])
DROP_WITH_CONTENT = ["script", "style", "iframe", "object", "embed", "noscript", "template"]

SAFE_URI_RE = re.compile(
    r"^(?:(?:(?:f|ht)tps?|mailto|tel|callto|sms|cid|xmpp):|[^a-z]|[a-z+.\-]+(?:[^a-z+.\-:]|$))",
    re.IGNORECASE,
)
TEMPLATE_EXPR_RE = re.compile(r"\{\{[\w\W]*?\}\}|\$\{[\w\W]*?\}|<%[\w\W]*?%>")
URI_NOISE_RE = re.compile(r"[\x00-\x20\u00a0\u1680\u180e\u2000-\u2029\u205f\u3000]")
SEARCH_STRIP_RE = re.compile(r"[%_;'\"`\\]")

ALLOWED_URL_SCHEMES = ("http", "https", "mailto")
MAX_SEARCH_LENGTH = 100


def sanitize_html(dirty: str) -> str:
    if not dirty:
        return ""

    soup = BeautifulSoup(dirty, "html.parser")

    for node in soup.find_all(string=lambda text: isinstance(text, Comment)):
        node.extract()
    for tag in soup.find_all(DROP_WITH_CONTENT):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue
        attrs = {}
        for name, value in tag.attrs.items():
            if name not in ALLOWED_ATTRS:
                continue
            if isinstance(value, list):
                value = " ".join(value)
            if name == "href" and not SAFE_URI_RE.match(URI_NOISE_RE.sub("", value)):
                continue
            attrs[name] = value
        tag.attrs = attrs

    for text in soup.find_all(string=True):
        if TEMPLATE_EXPR_RE.search(text):
            text.replace_with(TEMPLATE_EXPR_RE.sub(" ", text))

    return str(soup)


def sanitize_text(text: str) -> str:
    """Escape & < > " ' and / as HTML entities."""
    if not text:
        return ""
    return str(escape(text)).replace("/", "&#x2F;")


def sanitize_search(query: str) -> str:
    if not query:
        return ""
    safe = SEARCH_STRIP_RE.sub("", query).replace("\x00", "").strip()
    return safe[:MAX_SEARCH_LENGTH]


def sanitize_uuid(value: str) -> Optional[str]:
    if not value or not isinstance(value, str):
        return None
    if not re.fullmatch(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}", value):
        return None
    return str(uuid.UUID(value))


def sanitize_url(url: str) -> Optional[str]:
    if not url or not isinstance(url, str):
        return None

    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    if parsed.scheme.lower() not in ALLOWED_URL_SCHEMES:
        return None
    if parsed.scheme.lower() in ("http", "https") and not parsed.netloc:
        return None

    lowered = url.lower()
    if "javascript:" in lowered or "data:" in lowered:
        return None

    return url


def sanitize_profile(profile: dict) -> dict:
    """
    Sanitize the free-text profile fields. Only non-empty fields are returned,
    so the result can be merged into a stored profile as-is.
    """
    limits = {"bio": 500, "location": 100, "company": 100, "position": 100}
    cleaned = {}
    for field, limit in limits.items():
        value = profile.get(field)
        if value and isinstance(value, str):
            cleaned[field] = sanitize_text(value[:limit])

    website = profile.get("website")
    if website:
        safe_website = sanitize_url(website)
        if safe_website:
            cleaned["website"] = safe_website

    return cleaned
