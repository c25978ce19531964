"""
Replica store access and the bag transfer engine.
"""

from bagreplica.replication.store import ObjectStore
from bagreplica.replication.local_store import LocalObjectStore
from bagreplica.replication.duracloud_store import DuraCloudObjectStore
from bagreplica.replication.transfer import RetryPolicy, TransferEngine, TransferMode, TransferResult
from bagreplica.replication.odometer import Odometer
from bagreplica.replication.manager import ReplicaManager, get_store

__all__ = [
    "ObjectStore",
    "LocalObjectStore",
    "DuraCloudObjectStore",
    "RetryPolicy",
    "TransferEngine",
    "TransferMode",
    "TransferResult",
    "Odometer",
    "ReplicaManager",
    "get_store",
]
