"""
Pydantic schemas for the descriptor documents embedded in a bag.

Three document kinds are modelled:
1. MetadataDocument - an ordered list of metadata Values
2. PolicyDocument - an ordered list of access Policies
3. RoleGraph - groups, their memberships and the people they reference

All schemas are frozen. They are built once from a read-only snapshot of the
repository and handed to the codec; nothing updates them afterwards. Wire names
(attribute and element names) are owned by the codec, not by these classes.
"""

import re
from datetime import date
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from bagreplica.core.exceptions import MalformedDescriptor

# Outside the XML 1.0 character range, plus \r which parsers fold into \n
UNSAFE_XML_CHARACTERS = re.compile(r"[\x00-\x08\x0b-\x1f\ud800-\udfff\ufffe\uffff]")

ANONYMOUS_GROUP = "Anonymous"
ADMIN_GROUP = "Administrator"

KNOWN_ACTIONS = frozenset({
    "ADD",
    "READ",
    "ADMIN",
    "WRITE",
    "DELETE",
    "REMOVE",
    "READ_ITEM",
    "READ_BITSTREAM",
})


class DescriptorKind(str, Enum):
    """The descriptor documents a bag carries."""
    METADATA = "metadata"
    POLICY = "policy"
    ROLES = "roles"


class Descriptor(BaseModel):
    """
    Base schema for descriptor documents and their parts.

    String fields may only hold characters an XML document can carry back
    unchanged, so carriage returns and most control characters are refused.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    @model_validator(mode="after")
    def check_xml_characters(self):
        for name, value in self.__dict__.items():
            if isinstance(value, str):
                bad = UNSAFE_XML_CHARACTERS.search(value)
                if bad:
                    raise ValueError(f"{name} contains {bad.group()!r}, which XML cannot carry")
        return self


# Metadata

class Value(Descriptor):
    """One metadata statement, e.g. dc.title in English."""
    body: str
    schema_name: str = Field(min_length=1)
    element: str = Field(min_length=1)
    qualifier: Optional[str] = None
    language: Optional[str] = None


class MetadataDocument(Descriptor):
    """Metadata values in their original statement order."""
    values: Tuple[Value, ...] = ()

    def __len__(self) -> int:
        return len(self.values)

    def with_value(self, value: Value) -> "MetadataDocument":
        """Return a new document with value appended."""
        return MetadataDocument(values=self.values + (value,))


# Policies

class Policy(Descriptor):
    """
    One access-control rule.

    A rule names a group or a person (never both). Type-only rules name neither.
    Dates are ISO 'YYYY-MM-DD' strings; an absent date leaves that end open.
    """
    name: Optional[str] = None
    type: Optional[str] = None
    group: Optional[str] = None
    eperson: Optional[str] = None
    action: str = Field(min_length=1)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    description: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def check_iso_date(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            try:
                date.fromisoformat(v)
            except ValueError:
                raise ValueError(f"'{v}' is not an ISO date (YYYY-MM-DD)")
        return v

    @model_validator(mode="after")
    def check_single_identity(self) -> "Policy":
        if self.group is not None and self.eperson is not None:
            raise ValueError("a policy names either a group or an eperson, not both")
        return self

    @property
    def is_known_action(self) -> bool:
        return self.action in KNOWN_ACTIONS


class PolicyDocument(Descriptor):
    """Policies in declaration order."""
    policies: Tuple[Policy, ...] = ()

    def __len__(self) -> int:
        return len(self.policies)

    def with_policy(self, policy: Policy) -> "PolicyDocument":
        """Return a new document with policy appended."""
        return PolicyDocument(policies=self.policies + (policy,))


# Roles

class Member(Descriptor):
    """Reference to a person or a group by id, with a display name."""
    id: str = Field(min_length=1)
    name: Optional[str] = None


class Password(Descriptor):
    """A stored password hash with the salt and digest algorithm that produced it."""
    hash: str
    salt: Optional[str] = None
    algorithm: Optional[str] = None


class Person(Descriptor):
    """An account that can appear as a group member."""
    id: str = Field(min_length=1)
    email: Optional[str] = None
    net_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    language: Optional[str] = None
    can_login: bool = False
    self_registered: bool = False
    require_certificate: bool = False
    password: Optional[Password] = None


class AssociatedGroup(Descriptor):
    """
    A group with its direct members.

    Person members and group members are kept apart so that a reader never has
    to look up what a referenced id is. Two groups are the same group when their
    ids match, whatever else differs.
    """
    id: str = Field(min_length=1)
    name: Optional[str] = None
    type: Optional[str] = None
    members: FrozenSet[Member] = frozenset()
    member_groups: FrozenSet[Member] = frozenset()

    def __eq__(self, other) -> bool:
        if not isinstance(other, AssociatedGroup):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


class RoleGraph(Descriptor):
    """Identity and authorization snapshot: groups and people."""
    groups: FrozenSet[AssociatedGroup] = frozenset()
    people: FrozenSet[Person] = frozenset()

    def group(self, group_id: str) -> Optional[AssociatedGroup]:
        for g in self.groups:
            if g.id == group_id:
                return g
        return None

    def person(self, person_id: str) -> Optional[Person]:
        for p in self.people:
            if p.id == person_id:
                return p
        return None

    def unresolved_members(self) -> List[Tuple[str, str, str]]:
        """
        Find member references that point outside this snapshot.

        Returns:
            Sorted (group id, "person" or "group", member id) tuples
        """
        person_ids = {p.id for p in self.people}
        group_ids = {g.id for g in self.groups}
        missing = []
        for g in self.groups:
            missing.extend((g.id, "person", m.id) for m in g.members if m.id not in person_ids)
            missing.extend((g.id, "group", m.id) for m in g.member_groups if m.id not in group_ids)
        return sorted(missing)

    def verify(self) -> "RoleGraph":
        """Raise MalformedDescriptor unless every member reference resolves."""
        missing = self.unresolved_members()
        if missing:
            details = ", ".join(f"{kind} {member} in group {group}" for group, kind, member in missing)
            raise MalformedDescriptor(f"Unresolved role graph members: {details}")
        return self
