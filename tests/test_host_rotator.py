import threading

import pytest

from sources.host_rotator import HostRotator, normalize_host, parse_hosts


def test_rotation_order_wraps():
    rotator = HostRotator(["a", "b", "c"])
    picks = [rotator.next_host() for _ in range(7)]
    assert picks == ["a", "b", "c", "a", "b", "c", "a"]


def test_n_calls_visit_each_host_once():
    hosts = ["h0", "h1", "h2", "h3"]
    rotator = HostRotator(hosts)
    picks = [rotator.next_host() for _ in range(len(hosts))]
    assert sorted(picks) == sorted(hosts)
    assert len(set(picks)) == len(hosts)


def test_single_host_always_returned():
    rotator = HostRotator(["only"])
    assert {rotator.next_host() for _ in range(5)} == {"only"}


def test_empty_host_list_rejected():
    with pytest.raises(ValueError):
        HostRotator([])


def test_concurrent_picks_stay_balanced():
    rotator = HostRotator(["a", "b"])
    picks = []
    lock = threading.Lock()

    def worker():
        for _ in range(100):
            host = rotator.next_host()
            with lock:
                picks.append(host)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(picks) == 800
    assert picks.count("a") == picks.count("b") == 400


def test_normalize_host_adds_https():
    assert normalize_host("ascii2d.net") == "https://ascii2d.net"
    assert normalize_host("http://mirror.local/") == "http://mirror.local"
    assert normalize_host(" https://ascii2d.net ") == "https://ascii2d.net"


def test_parse_hosts_skips_blanks():
    assert parse_hosts("a.net, ,b.net,") == ["a.net", "b.net"]
    assert parse_hosts("") == []
