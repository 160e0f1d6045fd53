import pytest
import requests

from conftest import FakeResponse
from sources.base import UnexpectedResponseShape, UpstreamRequestFailed

API = "https://nhentai.net/api/galleries/search"
MIRROR = "https://nh.mirror.example"

GALLERY = {
    "id": 177013,
    "media_id": "987654",
    "images": {"thumbnail": {"t": "p", "w": 250, "h": 350}},
}


def _gallery_page(href, thumb):
    return (f'<div class="gallery"><a href="{href}" class="cover">'
            f'<img data-src="{thumb}" src="data:image/gif;base64,R0lG"></a></div>')


class Backend:
    """Scripted nhentai API + mirror keyed by query text."""

    def __init__(self, api=None, website=None):
        self.api = api or {}
        self.website = website or {}

    def __call__(self, method, url, kwargs):
        params = kwargs.get("params") or {}
        if url == API:
            value = self.api.get(params["query"], [])
            if isinstance(value, Exception):
                return value
            return FakeResponse(json_data={"result": value, "num_pages": 1, "per_page": 25})
        if url == f"{MIRROR}/search/":
            page = self.website.get(params["q"], "<div>no results</div>")
            return FakeResponse(text=page)
        return FakeResponse(status_code=404, text="", reason="Not Found")


def _queries(session):
    labels = []
    for method, url, kwargs in session.calls:
        params = kwargs.get("params") or {}
        if url == API:
            labels.append(("api", params["query"]))
        else:
            labels.append(("website", params["q"]))
    return labels


def test_refined_api_hit_stops_cascade(make_manager):
    manager, session = make_manager(Backend(api={"Foo chinese": [GALLERY]}))

    result = manager.nhentai_search("Foo")

    assert result["found"] is True
    assert result["url"] == "https://nhentai.net/g/177013/"
    assert result["thumbnail"] == "https://t.nhentai.net/galleries/987654/cover.png"
    assert result["text"] == (
        "URL: https://nhentai.net/g/177013/\n"
        "Thumbnail: https://t.nhentai.net/galleries/987654/cover.png"
    )
    assert _queries(session) == [("api", "Foo chinese")]


def test_raw_api_query_after_empty_refined(make_manager):
    manager, session = make_manager(Backend(api={"Foo": [GALLERY]}))

    result = manager.nhentai_search("Foo")

    assert result["found"] is True
    assert _queries(session) == [("api", "Foo chinese"), ("api", "Foo")]


def test_refined_website_wins_and_raw_website_never_runs(make_manager):
    backend = Backend(website={
        "Foo chinese": _gallery_page("/g/555/", "https://t.mirror/555.jpg"),
        "Foo": _gallery_page("/g/666/", "https://t.mirror/666.jpg"),
    })
    manager, session = make_manager(backend, nhentai_mirror_site=MIRROR)

    result = manager.nhentai_search("Foo")

    assert result["url"] == "https://nhentai.net/g/555/"
    assert result["thumbnail"] == "https://t.mirror/555.jpg"
    assert _queries(session) == [
        ("api", "Foo chinese"),
        ("api", "Foo"),
        ("website", "Foo chinese"),
    ]


def test_raw_website_is_last_resort(make_manager):
    backend = Backend(website={"Foo": _gallery_page("/g/666/", "https://t.mirror/666.jpg")})
    manager, session = make_manager(backend, nhentai_mirror_site="nh.mirror.example")

    result = manager.nhentai_search("Foo")

    assert result["url"] == "https://nhentai.net/g/666/"
    assert [q[0] for q in _queries(session)] == ["api", "api", "website", "website"]


def test_nothing_anywhere_without_mirror_is_not_found(make_manager):
    manager, session = make_manager(Backend())

    result = manager.nhentai_search("Foo")

    assert result == {"text": 'No results found for "Foo" on nhentai.', "found": False}
    assert len(session.calls) == 2


def test_nothing_anywhere_with_mirror_is_not_found(make_manager):
    manager, session = make_manager(Backend(), nhentai_mirror_site=MIRROR)
    assert manager.nhentai_search("Foo")["found"] is False
    assert len(session.calls) == 4


def test_api_failure_falls_through_to_website(make_manager):
    backend = Backend(
        api={"Foo chinese": requests.ConnectionError("cf"), "Foo": requests.ConnectionError("cf")},
        website={"Foo chinese": _gallery_page("/g/1/", "https://t/1.jpg")},
    )
    manager, _ = make_manager(backend, nhentai_mirror_site=MIRROR)

    assert manager.nhentai_search("Foo")["url"] == "https://nhentai.net/g/1/"


def test_api_failure_without_mirror_is_an_error(make_manager):
    backend = Backend(api={"Foo chinese": requests.ConnectionError("cf"), "Foo": []})
    manager, _ = make_manager(backend)

    with pytest.raises(UpstreamRequestFailed):
        manager.nhentai_search("Foo")


def test_malformed_api_payload(make_manager):
    def handler(method, url, kwargs):
        return FakeResponse(json_data={"error": "does not exist"})

    manager, _ = make_manager(handler)
    with pytest.raises(UnexpectedResponseShape):
        manager.nhentai_search("Foo")


@pytest.mark.parametrize("code,ext", [("j", "jpg"), ("p", "png"), ("g", "gif"), ("w", "webp")])
def test_thumbnail_extension_mapping(make_manager, code, ext):
    gallery = dict(GALLERY, images={"thumbnail": {"t": code}})
    manager, _ = make_manager(Backend(api={"Foo chinese": [gallery]}))
    assert manager.nhentai_search("Foo")["thumbnail"].endswith(f"/cover.{ext}")


def test_blank_name_rejected(make_manager):
    from sources.base import InvalidInput

    manager, session = make_manager(Backend())
    with pytest.raises(InvalidInput):
        manager.nhentai_search("   ")
    assert session.calls == []
