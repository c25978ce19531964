"""
bagreplica: descriptor documents for archival bags and replica store transfers.
"""

__version__ = "0.1.0"
