"""
Locate, write and read the descriptor files inside a bag's data directory.
"""

import logging
from pathlib import Path
from typing import Union

from bagreplica.descriptors import codec
from bagreplica.descriptors.schemas import DescriptorKind, MetadataDocument, PolicyDocument, RoleGraph

logger = logging.getLogger(__name__)

METADATA_XML = "metadata.xml"
POLICY_XML = "policy.xml"
ROLES_XML = "roles.xml"

FILE_NAMES = {
    DescriptorKind.METADATA: METADATA_XML,
    DescriptorKind.POLICY: POLICY_XML,
    DescriptorKind.ROLES: ROLES_XML,
}


def kind_of(document: codec.Document) -> DescriptorKind:
    """Return the descriptor kind of a document instance."""
    if isinstance(document, MetadataDocument):
        return DescriptorKind.METADATA
    if isinstance(document, PolicyDocument):
        return DescriptorKind.POLICY
    if isinstance(document, RoleGraph):
        return DescriptorKind.ROLES
    raise TypeError(f"Not a descriptor document: {type(document).__name__}")


def descriptor_path(directory: Union[str, Path], kind: Union[DescriptorKind, str]) -> Path:
    return Path(directory) / FILE_NAMES[DescriptorKind(kind)]


def write_descriptor(directory: Union[str, Path], document: codec.Document) -> Path:
    """
    Serialize a document into its conventional file under directory.

    Returns:
        Path of the written file
    """
    path = descriptor_path(directory, kind_of(document))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(codec.serialize(document))
    logger.debug(f"Wrote {path}")
    return path


def read_descriptor(directory: Union[str, Path], kind: Union[DescriptorKind, str], strict: bool = False) -> codec.Document:
    """
    Read the descriptor of the given kind from directory.

    Raises:
        FileNotFoundError: If the bag carries no such descriptor
        MalformedDescriptor: If the file does not decode
    """
    path = descriptor_path(directory, kind)
    return codec.deserialize(path.read_bytes(), kind, strict=strict)
