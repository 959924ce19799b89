"""Offline write-queue and connectivity gate."""
from ryme.offline.queue import OfflineQueue
from ryme.offline.gate import ConnectivityGate

__all__ = ['OfflineQueue', 'ConnectivityGate']
