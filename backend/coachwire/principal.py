"""Identity of the authenticated caller making a booking request."""

from __future__ import annotations

from dataclasses import dataclass

from coachwire.core.enums import RoleName


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller as resolved by the identity provider.

    Passed explicitly into every core operation; never re-verified there.
    """

    user_id: str
    role: RoleName

    @property
    def is_client(self) -> bool:
        return self.role == RoleName.CLIENT
