"""Explicit per-request account context.

Every permission check and data-access helper receives a ``RequestContext``
instead of reaching for a global session, so the resolver can be exercised
without a live login.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RequestContext:
    account_id: Optional[int] = None
    email: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "RequestContext":
        return cls()

    @classmethod
    def for_user(cls, user) -> "RequestContext":
        return cls(account_id=user.id, email=(user.email or "").strip().lower() or None)

    @property
    def is_authenticated(self) -> bool:
        return self.account_id is not None
