import os

import pytest
import requests

from conftest import FakeResponse
from sources.base import UnexpectedResponseShape, UpstreamRequestFailed
from sources.image_input import ImageSpec


COLOR_PAGE = (
    '<div class="item-box"><div class="image-box"><img src="/thumb/query.jpg"></div></div>'
    '<div class="item-box"><div class="image-box"><img src="/thumb/c.jpg"></div>'
    '<div class="detail-box"><h6><a href="https://pixiv/1">Color Title</a>'
    '<a href="https://pixiv/u/1">Color Artist</a></h6></div></div>'
)
FEATURE_PAGE = (
    '<div class="item-box"><div class="image-box"><img src="/thumb/f.jpg"></div>'
    '<div class="detail-box"><div class="external">Feature Title</div></div></div>'
)


def ascii2d_handler(color_page=COLOR_PAGE, feature=FEATURE_PAGE, color_url=None):
    def handler(method, url, kwargs):
        if "/search/url/" in url or url.endswith("/search/file"):
            host = url.split("/search/")[0]
            final = color_url or f"{host}/search/color/abc123"
            return FakeResponse(text=color_page, url=final)
        if "/search/bovw/" in url:
            if isinstance(feature, Exception):
                return feature
            return FakeResponse(text=feature, url=url)
        return FakeResponse(status_code=404, text="not found", reason="Not Found")
    return handler


def test_color_and_feature_both_succeed(make_manager):
    manager, session = make_manager(ascii2d_handler())

    result = manager.ascii2d_search(ImageSpec(url="https://x/y.jpg"))

    assert result["success"] is True
    assert result["color"] == (
        "ascii2d 色合検索\n"
        "「Color Title」/「Color Artist」\n"
        "Thumbnail: https://ascii2d.net/thumb/c.jpg\n"
        "URL: https://pixiv/1\n"
        "Author URL: https://pixiv/u/1"
    )
    assert result["feature"] == (
        "ascii2d 特徴検索\n"
        "Feature Title\n"
        "Thumbnail: https://ascii2d.net/thumb/f.jpg"
    )
    assert result["text"] == f"{result['color']}\n{result['feature']}"
    assert "might not be successful" not in result["text"]

    assert [c[1] for c in session.calls] == [
        "https://ascii2d.net/search/url/https://x/y.jpg",
        "https://ascii2d.net/search/bovw/abc123",
    ]


def test_missing_color_segment_fails_without_feature_stage(make_manager):
    manager, session = make_manager(ascii2d_handler(color_url="https://ascii2d.net/"))

    with pytest.raises(UnexpectedResponseShape):
        manager.ascii2d_search(ImageSpec(url="https://x/y.jpg"))

    assert len(session.calls) == 1


def test_unparseable_feature_page_is_partial(make_manager):
    manager, _ = make_manager(ascii2d_handler(feature="<html>nothing</html>"))

    result = manager.ascii2d_search(ImageSpec(url="https://x/y.jpg"))

    assert result["success"] is False
    assert "Color Title" in result["color"]
    assert result["feature"] == "ascii2d 特徴検索\n由未知错误导致搜索失败"
    assert result["text"].endswith("ascii2d search might not be successful.")
    assert result["details"]["feature"] is None


def test_feature_network_failure_is_partial(make_manager):
    manager, _ = make_manager(ascii2d_handler(feature=requests.Timeout("slow")))

    result = manager.ascii2d_search(ImageSpec(url="https://x/y.jpg"))

    assert result["success"] is False
    assert result["details"]["color"]["title"] == "Color Title"


def test_color_network_failure_propagates(make_manager):
    manager, _ = make_manager(lambda m, u, k: requests.ConnectionError("down"))
    with pytest.raises(UpstreamRequestFailed):
        manager.ascii2d_search(ImageSpec(url="https://x/y.jpg"))


def test_file_upload_and_cleanup(make_manager, tmp_path):
    manager, session = make_manager(ascii2d_handler())

    result = manager.ascii2d_search(ImageSpec(data=b"pixels"))

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "https://ascii2d.net/search/file"
    assert kwargs["files"]["file"] == ("image", b"pixels")
    assert result["success"] is True
    assert os.listdir(tmp_path) == []


def test_temp_file_removed_when_color_shape_is_wrong(make_manager, tmp_path):
    manager, _ = make_manager(ascii2d_handler(color_url="https://ascii2d.net/error"))
    with pytest.raises(UnexpectedResponseShape):
        manager.ascii2d_search(ImageSpec(data=b"pixels"))
    assert os.listdir(tmp_path) == []


def test_hosts_rotate_between_calls(make_manager):
    manager, session = make_manager(
        ascii2d_handler(),
        ascii2d_hosts=["https://ascii2d.net", "ascii2d.mirror.example"],
    )

    for _ in range(3):
        manager.ascii2d_search(ImageSpec(url="https://x/y.jpg"))

    stage_one = [c[1] for c in session.calls if "/search/url/" in c[1]]
    assert stage_one == [
        "https://ascii2d.net/search/url/https://x/y.jpg",
        "https://ascii2d.mirror.example/search/url/https://x/y.jpg",
        "https://ascii2d.net/search/url/https://x/y.jpg",
    ]


def test_failed_host_is_not_retried_within_call(make_manager):
    def handler(method, url, kwargs):
        if url.startswith("https://dead.example"):
            return requests.ConnectionError("dead")
        return ascii2d_handler()(method, url, kwargs)

    manager, session = make_manager(handler, ascii2d_hosts=["dead.example", "https://ascii2d.net"])

    with pytest.raises(UpstreamRequestFailed):
        manager.ascii2d_search(ImageSpec(url="https://x/y.jpg"))
    assert len(session.calls) == 1

    result = manager.ascii2d_search(ImageSpec(url="https://x/y.jpg"))
    assert result["success"] is True
