"""Text rendering for search results.

Every function returns plain text for chat-style display alongside the
structured payload the API route serializes as JSON.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .base import DetailRecord, NormalizedResult, format_similarity


SEPARATOR = "---\n"
NO_RESULTS = "No results found."
EXTRACTION_FAILED = "由未知错误导致搜索失败"
ASCII2D_COLOR_HEADER = "ascii2d 色合検索"
ASCII2D_FEATURE_HEADER = "ascii2d 特徴検索"
ASCII2D_UNSUCCESSFUL = "ascii2d search might not be successful."


@dataclass
class FormattedResult:
    text: str
    structured: Dict[str, Any] = field(default_factory=dict)


def format_similarity_results(results: List[NormalizedResult]) -> FormattedResult:
    """Render SauceNAO hits; empty fields get no line at all."""
    if not results:
        return FormattedResult(NO_RESULTS, {"results": []})

    blocks = []
    for res in results:
        text = f"相似度: {format_similarity(res.similarity) or '?'}%\n"
        if res.title:
            text += f"标题: {res.title}\n"
        if res.author:
            text += f"作者: {res.author}\n"
        if res.source_url:
            text += f"链接: {res.source_url}\n"
        blocks.append(text)

    return FormattedResult(
        SEPARATOR.join(blocks),
        {"results": [res.to_dict() for res in results]},
    )


def format_detail(detail: Optional[DetailRecord]) -> Tuple[bool, str]:
    """Render one ascii2d detail. Returns (success, text)."""
    if not detail or not detail.title:
        return False, EXTRACTION_FAILED

    texts = [f"「{detail.title}」/「{detail.author}」" if detail.author else detail.title]
    if detail.thumbnail:
        texts.append(f"Thumbnail: {detail.thumbnail}")
    if detail.url:
        texts.append(f"URL: {detail.url}")
    if detail.author_url:
        texts.append(f"Author URL: {detail.author_url}")
    return True, "\n".join(texts)


def format_ascii2d(color: Optional[DetailRecord], feature: Optional[DetailRecord]) -> FormattedResult:
    """Concatenate the color and feature blocks under their headers."""
    color_ok, color_text = format_detail(color)
    feature_ok, feature_text = format_detail(feature)
    success = color_ok and feature_ok

    color_block = f"{ASCII2D_COLOR_HEADER}\n{color_text}"
    feature_block = f"{ASCII2D_FEATURE_HEADER}\n{feature_text}"

    text = f"{color_block}\n{feature_block}"
    if not success:
        text += f"\n{ASCII2D_UNSUCCESSFUL}"

    return FormattedResult(text, {
        "color": color_block,
        "feature": feature_block,
        "success": success,
        "details": {
            "color": color.to_dict() if color else None,
            "feature": feature.to_dict() if feature else None,
        },
    })


def format_catalog(name: str, result: Optional[NormalizedResult]) -> FormattedResult:
    """Render an nhentai hit, or the explicit not-found message."""
    if result is None:
        return FormattedResult(f'No results found for "{name}" on nhentai.', {"found": False})

    return FormattedResult(
        f"URL: {result.source_url}\nThumbnail: {result.thumbnail_url}",
        {
            "found": True,
            "url": result.source_url,
            "thumbnail": result.thumbnail_url,
            "id": result.index_id,
        },
    )
