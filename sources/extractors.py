"""
================================================================================
SauceSearch v1.0 - HTML Result Extractors
================================================================================
Parsers for the two HTML-only surfaces:

  extract_detail()   ascii2d color / bovw result pages (.item-box elements)
  extract_gallery()  nhentai mirror search pages (.gallery elements)

ASCII2D ITEM BOXES:
  Boxes are scanned in document order and each one is offered to the
  DETAIL_SHAPES matchers in fixed priority order. The first hit wins and
  later boxes are ignored, even if one of them would have been a better
  match. Reordering DETAIL_SHAPES changes results.
================================================================================
"""

from typing import Callable, List, Optional, Tuple

from bs4 import BeautifulSoup

from .base import DetailRecord, source_log


ShapeMatcher = Callable[..., Optional[DetailRecord]]


def _thumbnail(box, base_url: str) -> Optional[str]:
    img = box.select_one('.image-box img')
    if not img or not img.get('src'):
        return None
    return base_url + img.get('src')


def match_normal(box, base_url: str) -> Optional[DetailRecord]:
    """Regular result: title link followed by author link."""
    links = box.select('.detail-box a')
    if len(links) < 2:
        return None
    title, author = links[0], links[1]
    return DetailRecord(
        title=title.get_text(strip=True),
        url=title.get('href'),
        author=author.get_text(strip=True),
        author_url=author.get('href'),
        thumbnail=_thumbnail(box, base_url),
    )


def match_external(box, base_url: str) -> Optional[DetailRecord]:
    """User-submitted result: only an .external marker, no links."""
    external = box.select_one('.external')
    if not external:
        return None
    return DetailRecord(
        title=external.get_text(strip=True),
        thumbnail=_thumbnail(box, base_url),
    )


DETAIL_SHAPES: List[Tuple[str, ShapeMatcher]] = [
    ("normal", match_normal),
    ("external", match_external),
]


def extract_detail(html: str, base_url: str) -> Optional[DetailRecord]:
    """
    Return the first ascii2d item box matching one of DETAIL_SHAPES.

    Args:
        html: Result page markup
        base_url: Host the page came from, prefixed to thumbnail src paths

    Returns:
        DetailRecord, or None when no box matched (logged)
    """
    soup = BeautifulSoup(html or "", 'html.parser')
    for box in soup.select('.item-box'):
        for _shape, matcher in DETAIL_SHAPES:
            detail = matcher(box, base_url)
            if detail is not None:
                return detail

    source_log("❌ ascii2d: could not extract a result from page")
    return None


def extract_gallery(html: str) -> Optional[Tuple[str, str]]:
    """
    Parse the first gallery of an nhentai search page.

    Returns:
        (href, thumbnail) of the first .gallery, or None
    """
    soup = BeautifulSoup(html or "", 'html.parser')
    gallery = soup.select_one('.gallery')
    if not gallery:
        return None

    link = gallery.select_one('a')
    href = link.get('href') if link else None
    if not href:
        return None

    img = gallery.select_one('img')
    thumb = (img.get('data-src') or img.get('src')) if img else None
    if not thumb:
        return None

    return href, thumb
