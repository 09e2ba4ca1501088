"""Booking parties.

A tourist or seller on a booking is either a registered user (a ``users`` row)
or a guest/demo session identified only by a string. The two never mix, so
every comparison goes through :class:`PartyRef` instead of raw columns.
"""
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Registered:
    user_id: str

    kind = "registered"

    @property
    def value(self) -> str:
        return self.user_id


@dataclass(frozen=True)
class Guest:
    guest_id: str

    kind = "guest"

    @property
    def value(self) -> str:
        return self.guest_id


PartyRef = Union[Registered, Guest]


def party_from_columns(user_id: Optional[str], guest_id: Optional[str]) -> PartyRef:
    """Resolve a (registered id, guest id) column pair; exactly one must be set."""
    if bool(user_id) == bool(guest_id):
        raise ValueError("exactly one of user id / guest id must be set")
    if user_id:
        return Registered(user_id)
    return Guest(guest_id)


def party_to_columns(party: PartyRef) -> tuple[Optional[str], Optional[str]]:
    if isinstance(party, Registered):
        return party.user_id, None
    if isinstance(party, Guest):
        return None, party.guest_id
    raise TypeError(f"not a party ref: {party!r}")


def same_party(a: Optional[PartyRef], b: Optional[PartyRef]) -> bool:
    # A guest id equal to some user id is still a different party.
    if a is None or b is None:
        return False
    return type(a) is type(b) and a.value == b.value


def party_to_dict(party: PartyRef) -> dict:
    return {"kind": party.kind, "id": party.value}


@dataclass(frozen=True)
class Caller:
    """Who is making a request, as resolved from the bearer token."""
    party: PartyRef
    role: str  # tourist, seller, admin
    email: Optional[str] = None

    @property
    def id(self) -> str:
        return self.party.value

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_guest(self) -> bool:
        return isinstance(self.party, Guest)
