"""Economy policy loading."""

from famcoin.policy.resolver import PolicyResolver

__all__ = ["PolicyResolver"]
