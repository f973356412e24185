"""
Caller identity — opaque principal issued by the identity provider.

The only client-visible operations are string rendering (truncated for the
header bar) and equality, used to detect that the principal changed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Identity:
    principal: str
    token: Optional[str] = field(default=None, compare=False, repr=False)

    def short(self, keep: int = 5) -> str:
        """``abcde...vwxyz`` for long principals, unchanged otherwise."""
        if len(self.principal) <= keep * 2 + 3:
            return self.principal
        return f"{self.principal[:keep]}...{self.principal[-keep:]}"

    def __str__(self) -> str:
        return self.principal


def same_principal(a: Optional[Identity], b: Optional[Identity]) -> bool:
    if a is None or b is None:
        return a is b
    return a.principal == b.principal
