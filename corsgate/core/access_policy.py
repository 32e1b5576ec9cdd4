"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

Origin access policy for Corsgate.

Decides whether a request origin may pass through the gateway, given the
operator's whitelist and blacklist. Evaluation is pure: the policy is
frozen at construction and only ever read.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

WILDCARD_ORIGIN = "*"


@dataclass(frozen=True)
class OriginPolicyConfig:
    """
    Immutable origin whitelist/blacklist.

    Attributes:
        whitelist: Allowed origins. Empty means no whitelist restriction;
            a "*" entry admits every origin regardless of the blacklist.
        blacklist: Rejected origins.
    """

    whitelist: FrozenSet[str] = frozenset()
    blacklist: FrozenSet[str] = frozenset()

    @classmethod
    def from_lists(
        cls,
        whitelist: Optional[Iterable[str]] = None,
        blacklist: Optional[Iterable[str]] = None,
    ) -> "OriginPolicyConfig":
        """Build a policy from the list form used in configuration files."""
        return cls(
            whitelist=frozenset(whitelist or ()),
            blacklist=frozenset(blacklist or ()),
        )


def is_allowed(origin: str, policy: OriginPolicyConfig) -> bool:
    """
    Evaluate whether an origin may proceed.

    An absent Origin header is evaluated as the empty-string origin, so an
    operator can admit originless clients by whitelisting "".

    Args:
        origin: Origin header value ("" when absent)
        policy: Origin policy to evaluate against

    Returns:
        True if the origin is admitted
    """
    if WILDCARD_ORIGIN in policy.whitelist:
        return True
    if policy.whitelist and origin not in policy.whitelist:
        return False
    if policy.blacklist and origin in policy.blacklist:
        return False
    return True
