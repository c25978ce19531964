"""
Descriptor documents (metadata, policies, roles) and their XML codec.
"""

from bagreplica.descriptors.schemas import (
    ADMIN_GROUP,
    ANONYMOUS_GROUP,
    AssociatedGroup,
    DescriptorKind,
    Member,
    MetadataDocument,
    Password,
    Person,
    Policy,
    PolicyDocument,
    RoleGraph,
    Value,
)
from bagreplica.descriptors.codec import (
    deserialize,
    deserialize_metadata,
    deserialize_policies,
    deserialize_roles,
    serialize,
    serialize_metadata,
    serialize_policies,
    serialize_roles,
)
from bagreplica.descriptors.files import read_descriptor, write_descriptor

__all__ = [
    "ADMIN_GROUP",
    "ANONYMOUS_GROUP",
    "AssociatedGroup",
    "DescriptorKind",
    "Member",
    "MetadataDocument",
    "Password",
    "Person",
    "Policy",
    "PolicyDocument",
    "RoleGraph",
    "Value",
    "deserialize",
    "deserialize_metadata",
    "deserialize_policies",
    "deserialize_roles",
    "serialize",
    "serialize_metadata",
    "serialize_policies",
    "serialize_roles",
    "read_descriptor",
    "write_descriptor",
]
