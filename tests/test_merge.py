import copy

import pytest

from hostbasics.models import IpInfo
from hostbasics.network.merge import MergeError, choose_string, compare_and_merge_ip_info


def test_choose_string_keeps_current_value():
    assert choose_string("a", "b") == "a"
    assert choose_string("", "b") == "b"
    assert choose_string("", "") == ""


def test_merge_fills_only_empty_fields():
    dst = IpInfo(ip="1.1.1.1", asn="13335", country="")
    src = IpInfo(ip="9.9.9.9", asn="19281", org="Quad9", country="CH")
    merged = compare_and_merge_ip_info(dst, src)
    assert merged is dst
    assert merged == IpInfo(ip="1.1.1.1", asn="13335", org="Quad9", country="CH")


def test_merge_into_none_copies_source():
    src = IpInfo(ip="1.1.1.1", city="Sydney")
    merged = compare_and_merge_ip_info(None, src)
    assert merged == src
    assert merged is not src


def test_merge_without_source_raises():
    with pytest.raises(MergeError):
        compare_and_merge_ip_info(IpInfo(), None)


def test_merge_is_idempotent():
    x = IpInfo(ip="203.0.113.7", asn="64500", country="NL")
    assert compare_and_merge_ip_info(copy.copy(x), copy.copy(x)) == x
