import os

import pytest

from sources.base import (
    DATABASES, DatabaseSelector, InvalidInput, LocalMaterialized, SourceStatus, TextQuery,
    UpstreamRequestFailed, format_similarity, parse_similarity
)


@pytest.mark.parametrize("name", ["doujin", "anime"])
def test_paired_databases_resolve_to_two_codes(name):
    selector = DatabaseSelector.resolve(name)
    assert len(selector.codes) == 2
    assert selector.is_pair


@pytest.mark.parametrize("name", [n for n in DATABASES if n not in ("doujin", "anime")])
def test_other_databases_resolve_to_one_code(name):
    selector = DatabaseSelector.resolve(name)
    assert selector.codes == (DATABASES[name],)
    assert not selector.is_pair


def test_database_pair_codes():
    assert DatabaseSelector.resolve("doujin").codes == (18, 38)
    assert DatabaseSelector.resolve("anime").codes == (21, 22)


def test_missing_database_defaults_to_all():
    assert DatabaseSelector.resolve(None).codes == (999,)


def test_unknown_database_is_invalid_input():
    with pytest.raises(InvalidInput):
        DatabaseSelector.resolve("gelbooru")


def test_similarity_rounds_to_two_decimals():
    assert format_similarity(parse_similarity("87.654")) == "87.65"
    assert format_similarity(parse_similarity("91.23")) == "91.23"
    assert format_similarity(parse_similarity("50")) == "50.00"


def test_similarity_garbage_is_none():
    assert parse_similarity("n/a") is None
    assert parse_similarity(None) is None
    assert format_similarity(None) is None


def test_refined_text_query_appends_qualifier():
    assert TextQuery("Foo", refined=True).text == "Foo chinese"
    assert TextQuery("Foo").text == "Foo"


def test_release_deletes_owned_file_once(tmp_path):
    path = tmp_path / "upload.png"
    path.write_bytes(b"x")
    image = LocalMaterialized(str(path), owns_temp_file=True)

    assert image.release() is True
    assert not path.exists()
    assert image.release() is False
    assert image.released


def test_release_leaves_borrowed_file(tmp_path):
    path = tmp_path / "mine.png"
    path.write_bytes(b"x")
    image = LocalMaterialized(str(path), owns_temp_file=False)

    assert image.release() is False
    assert path.exists()


def test_release_failure_is_not_fatal(tmp_path):
    image = LocalMaterialized(str(tmp_path / "gone.png"), owns_temp_file=True)
    assert image.release() is False


def test_upstream_error_carries_status():
    exc = UpstreamRequestFailed("Too many requests", status=429)
    assert exc.status == 429
    assert exc.message == "Too many requests"
    assert "429" in str(exc)


def _challenged_connector():
    from conftest import FakeResponse, FakeSession
    from sources.nhentai import NHentaiConnector

    session = FakeSession(lambda m, u, k: FakeResponse(status_code=403, text="blocked", reason="Forbidden"))
    return NHentaiConnector(session)


def test_cloudflare_challenge_counts_once():
    connector = _challenged_connector()
    with pytest.raises(UpstreamRequestFailed):
        connector.search(connector.query("Foo", refined=False))

    health = connector.get_health_info()
    assert health["failure_count"] == 1
    assert health["status"] == SourceStatus.CLOUDFLARE.value


def test_five_challenges_take_connector_offline():
    connector = _challenged_connector()
    for attempt in range(5):
        assert connector.status != SourceStatus.OFFLINE, attempt
        with pytest.raises(UpstreamRequestFailed):
            connector.search(connector.query("Foo", refined=False))
    assert connector.status == SourceStatus.OFFLINE
