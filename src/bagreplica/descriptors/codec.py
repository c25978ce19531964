"""
XML codec for descriptor documents.

Placement of every field is spelled out in the tables below: scalar identity and
classification fields become attributes, the one free-text payload of an element
(Value.body, Password.hash) becomes its text, and group memberships are written
as two wrapped lists (Members/Member and MemberGroups/MemberGroup).

Optional fields that are absent are left out of the output entirely. The Person
flags (CanLogin, SelfRegistered, RequiredCertificate) are empty elements whose
presence means true; they are never written as "true"/"false" text.

Output is canonical: equal documents always produce identical bytes.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterable, Tuple, Type, Union

from pydantic import ValidationError

from bagreplica.core.exceptions import MalformedDescriptor
from bagreplica.descriptors.schemas import (
    AssociatedGroup,
    Descriptor,
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

logger = logging.getLogger(__name__)

Document = Union[MetadataDocument, PolicyDocument, RoleGraph]
FieldTable = Tuple[Tuple[str, str], ...]

ENCODING = "utf-8"
INDENT = "  "

# Metadata: <metadata><value schema=".." element="..">body</value></metadata>
METADATA_ROOT = "metadata"
VALUE_TAG = "value"
VALUE_ATTRIBUTES: FieldTable = (
    ("schema_name", "schema"),
    ("element", "element"),
    ("qualifier", "qualifier"),
    ("language", "language"),
)
VALUE_REQUIRED = ("schema", "element")

# Policies: <policies><policy action=".." .../></policies>
POLICY_ROOT = "policies"
POLICY_TAG = "policy"
POLICY_ATTRIBUTES: FieldTable = (
    ("name", "name"),
    ("type", "type"),
    ("group", "group"),
    ("action", "action"),
    ("eperson", "eperson"),
    ("start_date", "start-date"),
    ("end_date", "end-date"),
    ("description", "description"),
)
POLICY_REQUIRED = ("action",)

# Roles
ROLES_ROOT = "DSpaceRoles"
GROUPS_WRAPPER, GROUP_TAG = "Groups", "Group"
PEOPLE_WRAPPER, PERSON_TAG = "People", "Person"
GROUP_ATTRIBUTES: FieldTable = (("id", "ID"), ("name", "Name"), ("type", "Type"))
MEMBER_ATTRIBUTES: FieldTable = (("id", "ID"), ("name", "Name"))
PERSON_ATTRIBUTES: FieldTable = (("id", "ID"),)
ID_REQUIRED = ("ID",)
# (field, wrapper element, item element)
MEMBER_LISTS: Tuple[Tuple[str, str, str], ...] = (
    ("members", "Members", "Member"),
    ("member_groups", "MemberGroups", "MemberGroup"),
)
PERSON_ELEMENTS: FieldTable = (
    ("email", "Email"),
    ("net_id", "Netid"),
    ("first_name", "FirstName"),
    ("last_name", "LastName"),
    ("language", "Language"),
)
PERSON_FLAGS: FieldTable = (
    ("can_login", "CanLogin"),
    ("self_registered", "SelfRegistered"),
    ("require_certificate", "RequiredCertificate"),
)
PASSWORD_TAG = "Password"
PASSWORD_ATTRIBUTES: FieldTable = (("salt", "salt"), ("algorithm", "digest"))


def _id_sort_key(identifier: str):
    # numeric ids in numeric order, anything else (e.g. UUIDs) after them
    if identifier.isdecimal():
        return (0, int(identifier), identifier)
    return (1, 0, identifier)


def _set_attributes(elem: ET.Element, model: Descriptor, table: FieldTable) -> None:
    for field, wire in table:
        value = getattr(model, field)
        if value is not None:
            elem.set(wire, value)


def _read_attributes(elem: ET.Element, table: FieldTable, required: Iterable[str] = ()) -> Dict[str, Any]:
    for wire in required:
        if elem.get(wire) is None:
            raise MalformedDescriptor(f"<{elem.tag}> is missing required attribute '{wire}'")
    data = {}
    for field, wire in table:
        value = elem.get(wire)
        if value is not None:
            data[field] = value
    return data


def _build(model_cls: Type[Descriptor], data: Dict[str, Any], tag: str):
    try:
        return model_cls(**data)
    except ValidationError as e:
        raise MalformedDescriptor(f"Invalid <{tag}>: {e}") from e


def _to_bytes(root: ET.Element) -> bytes:
    ET.indent(root, space=INDENT)
    return ET.tostring(root, encoding=ENCODING, xml_declaration=True) + b"\n"


def _parse(data: Union[bytes, str], root_tag: str) -> ET.Element:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise MalformedDescriptor(f"Unparsable <{root_tag}> document: {e}") from e
    if root.tag != root_tag:
        raise MalformedDescriptor(f"Expected root element <{root_tag}>, found <{root.tag}>")
    return root


# Metadata

def serialize_metadata(document: MetadataDocument) -> bytes:
    """Serialize metadata values in document order."""
    root = ET.Element(METADATA_ROOT)
    for value in document.values:
        elem = ET.SubElement(root, VALUE_TAG)
        _set_attributes(elem, value, VALUE_ATTRIBUTES)
        elem.text = value.body
    return _to_bytes(root)


def deserialize_metadata(data: Union[bytes, str]) -> MetadataDocument:
    """
    Read a metadata document, keeping the order of its values.

    Raises:
        MalformedDescriptor: If the XML is invalid or a value lacks schema or element
    """
    root = _parse(data, METADATA_ROOT)
    values = []
    for elem in root.findall(VALUE_TAG):
        fields = _read_attributes(elem, VALUE_ATTRIBUTES, VALUE_REQUIRED)
        fields["body"] = elem.text or ""
        values.append(_build(Value, fields, VALUE_TAG))
    return MetadataDocument(values=tuple(values))


# Policies

def serialize_policies(document: PolicyDocument) -> bytes:
    """Serialize policies in declaration order."""
    root = ET.Element(POLICY_ROOT)
    for policy in document.policies:
        elem = ET.SubElement(root, POLICY_TAG)
        _set_attributes(elem, policy, POLICY_ATTRIBUTES)
    return _to_bytes(root)


def deserialize_policies(data: Union[bytes, str]) -> PolicyDocument:
    """
    Read a policy document, keeping declaration order.

    Raises:
        MalformedDescriptor: If the XML is invalid, a policy has no action,
            names both a group and an eperson, or carries a non-ISO date
    """
    root = _parse(data, POLICY_ROOT)
    policies = []
    for elem in root.findall(POLICY_TAG):
        fields = _read_attributes(elem, POLICY_ATTRIBUTES, POLICY_REQUIRED)
        policies.append(_build(Policy, fields, POLICY_TAG))
    return PolicyDocument(policies=tuple(policies))


# Roles

def _write_group(parent: ET.Element, group: AssociatedGroup) -> None:
    elem = ET.SubElement(parent, GROUP_TAG)
    _set_attributes(elem, group, GROUP_ATTRIBUTES)
    for field, wrapper_tag, item_tag in MEMBER_LISTS:
        members = getattr(group, field)
        if not members:
            continue
        wrapper = ET.SubElement(elem, wrapper_tag)
        for member in sorted(members, key=lambda m: (_id_sort_key(m.id), m.name or "")):
            _set_attributes(ET.SubElement(wrapper, item_tag), member, MEMBER_ATTRIBUTES)


def _write_person(parent: ET.Element, person: Person) -> None:
    elem = ET.SubElement(parent, PERSON_TAG)
    _set_attributes(elem, person, PERSON_ATTRIBUTES)
    for field, tag in PERSON_ELEMENTS:
        value = getattr(person, field)
        if value is not None:
            ET.SubElement(elem, tag).text = value
    for field, tag in PERSON_FLAGS:
        if getattr(person, field):
            ET.SubElement(elem, tag)
    if person.password is not None:
        pw = ET.SubElement(elem, PASSWORD_TAG)
        _set_attributes(pw, person.password, PASSWORD_ATTRIBUTES)
        pw.text = person.password.hash


def serialize_roles(graph: RoleGraph) -> bytes:
    """Serialize a role graph with groups, people and members sorted by id."""
    root = ET.Element(ROLES_ROOT)
    if graph.groups:
        groups = ET.SubElement(root, GROUPS_WRAPPER)
        for group in sorted(graph.groups, key=lambda g: _id_sort_key(g.id)):
            _write_group(groups, group)
    if graph.people:
        people = ET.SubElement(root, PEOPLE_WRAPPER)
        for person in sorted(graph.people, key=lambda p: _id_sort_key(p.id)):
            _write_person(people, person)
    return _to_bytes(root)


def _read_group(elem: ET.Element) -> AssociatedGroup:
    fields = _read_attributes(elem, GROUP_ATTRIBUTES, ID_REQUIRED)
    for field, wrapper_tag, item_tag in MEMBER_LISTS:
        fields[field] = frozenset(
            _build(Member, _read_attributes(m, MEMBER_ATTRIBUTES, ID_REQUIRED), item_tag)
            for m in elem.findall(f"{wrapper_tag}/{item_tag}")
        )
    return _build(AssociatedGroup, fields, GROUP_TAG)


def _read_person(elem: ET.Element) -> Person:
    fields = _read_attributes(elem, PERSON_ATTRIBUTES, ID_REQUIRED)
    for field, tag in PERSON_ELEMENTS:
        child = elem.find(tag)
        if child is not None:
            fields[field] = child.text or ""
    for field, tag in PERSON_FLAGS:
        if elem.find(tag) is not None:
            fields[field] = True
    pw = elem.find(PASSWORD_TAG)
    if pw is not None:
        pw_fields = _read_attributes(pw, PASSWORD_ATTRIBUTES)
        pw_fields["hash"] = pw.text or ""
        fields["password"] = _build(Password, pw_fields, PASSWORD_TAG)
    return _build(Person, fields, PERSON_TAG)


def deserialize_roles(data: Union[bytes, str], strict: bool = False) -> RoleGraph:
    """
    Read a role graph.

    Args:
        data: Serialized DSpaceRoles document
        strict: Also require every member reference to resolve within the document

    Raises:
        MalformedDescriptor: If the XML is invalid, an id is missing, or (strict)
            a member does not resolve
    """
    root = _parse(data, ROLES_ROOT)
    groups = [_read_group(e) for e in root.findall(f"{GROUPS_WRAPPER}/{GROUP_TAG}")]
    people = [_read_person(e) for e in root.findall(f"{PEOPLE_WRAPPER}/{PERSON_TAG}")]

    group_ids = [g.id for g in groups]
    if len(set(group_ids)) != len(group_ids):
        logger.warning("Role graph lists the same group id more than once; keeping the first")

    graph = RoleGraph(groups=frozenset(groups), people=frozenset(people))
    if strict:
        graph.verify()
    return graph


# Dispatch by document kind

def serialize(document: Document) -> bytes:
    """Serialize any descriptor document."""
    if isinstance(document, MetadataDocument):
        return serialize_metadata(document)
    if isinstance(document, PolicyDocument):
        return serialize_policies(document)
    if isinstance(document, RoleGraph):
        return serialize_roles(document)
    raise TypeError(f"Not a descriptor document: {type(document).__name__}")


def deserialize(data: Union[bytes, str], kind: Union[DescriptorKind, str], strict: bool = False) -> Document:
    """Deserialize a descriptor document of the given kind."""
    kind = DescriptorKind(kind)
    if kind is DescriptorKind.METADATA:
        return deserialize_metadata(data)
    if kind is DescriptorKind.POLICY:
        return deserialize_policies(data)
    return deserialize_roles(data, strict=strict)
