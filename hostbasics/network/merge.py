from dataclasses import fields
from typing import Optional

from hostbasics.models import IpInfo


class MergeError(ValueError):
    """Raised when there is nothing to merge from."""


def choose_string(current: str, candidate: str) -> str:
    """Keeps the current value unless it is empty."""
    return current if current else candidate


def compare_and_merge_ip_info(dst: Optional[IpInfo], src: Optional[IpInfo]) -> IpInfo:
    """Fills the empty fields of dst from src, in place.

    Fields already set in dst are never overwritten, so merging sources in
    descending priority lets the highest-priority non-empty value win.
    """
    if src is None:
        raise MergeError("cannot merge IpInfo: source is None")
    if dst is None:
        dst = IpInfo()
    for f in fields(IpInfo):
        setattr(dst, f.name, choose_string(getattr(dst, f.name), getattr(src, f.name)))
    return dst
