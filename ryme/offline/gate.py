"""
Connectivity gate.

Online, commands run immediately. Offline, they are queued and the caller
gets an optimistic response carrying a temporary id and `_offline: True`.
When connectivity returns the queue is replayed head-first by a single
consumer; a failing entry stays at the head and halts the replay.
"""
import logging
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import DBAPIError

from ryme.blueprints.metrics import offline_queue_replayed_total
from ryme.commands import Command, CommandExecutor, decode, encode
from ryme.offline.queue import OfflineQueue, replace_id, replace_path

logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = 'offline-'

StatusListener = Callable[[Dict[str, Any]], None]


def new_temp_id() -> str:
    return f'{TEMP_ID_PREFIX}{uuid.uuid4()}'


class ConnectivityGate:
    """
    Routes each mutating command to the executor or the offline queue.

    Args:
        executor: CommandExecutor running commands against the store
        queue: OfflineQueue holding calls made while offline
        online: initial connectivity state
    """

    def __init__(self, executor: CommandExecutor, queue: OfflineQueue, online: bool = True):
        self.executor = executor
        self.queue = queue
        self._online = online
        self._replay_lock = threading.Lock()
        self._syncing = False
        self._listeners: List[StatusListener] = []
        self._resolved: Dict[str, Any] = {}

    @property
    def is_online(self) -> bool:
        return self._online

    def status(self) -> Dict[str, Any]:
        return {
            'is_online': self._online,
            'pending_count': self.queue.count(),
            'sync_in_progress': self._syncing,
        }

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        status = self.status()
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.error(f"[OFFLINE] Status listener failed: {e}", exc_info=True)

    def set_online(self, online: bool) -> Optional[Dict[str, Any]]:
        """
        Flip connectivity. Coming back online replays the queue.

        Returns:
            The replay summary when a replay ran, else None
        """
        was_online = self._online
        self._online = online
        logger.info(f"[OFFLINE] Connectivity {'online' if online else 'offline'}")
        self._emit()
        if online and not was_online:
            return self.replay()
        return None

    def submit(self, command: Command) -> Any:
        """
        Execute or queue a command.

        While entries are pending the command is queued behind them even
        when online, so calls always reach the store in issue order.
        """
        command = self._resolve_command(command)
        if self._online and self.queue.count() == 0:
            try:
                return self.executor(command)
            except DBAPIError as e:
                if not e.connection_invalidated:
                    raise
                logger.warning(f"[OFFLINE] Store unreachable, queueing {command.type}: {e}")
                self._online = False
                return self._enqueue(command)

        response = self._enqueue(command)
        if self._online:
            self.replay()
        return response

    def _resolve_command(self, command: Command) -> Command:
        """Swap temporary ids that were already replayed for their real ids."""
        if not self._resolved:
            return command
        method, path, payload = encode(command)
        for temp_id, real_id in self._resolved.items():
            path = replace_path(path, temp_id, real_id)
            payload = replace_id(payload, temp_id, real_id)
        return decode(method, path, payload)

    def _enqueue(self, command: Command) -> Dict[str, Any]:
        temp_id = new_temp_id() if command.creates else None
        self.queue.enqueue(command, temp_id=temp_id)
        self._emit()

        response = dict(command.body())
        response['id'] = temp_id if temp_id is not None else command.target_id
        response['_offline'] = True
        return response

    def replay(self) -> Dict[str, Any]:
        """
        Replay pending entries strictly in order.

        Only one replay runs at a time; concurrent callers return at once
        with `skipped: True`. On failure the entry keeps its place, the
        error is recorded and the replay stops. Entries queued while the
        lock was being released are picked up before returning.
        """
        summary = self._replay_once()
        replayed = summary['replayed']
        while (not summary['skipped'] and summary['error'] is None
               and self._online and self.queue.count() > 0):
            summary = self._replay_once()
            replayed += summary['replayed']
        summary['replayed'] = replayed
        return summary

    def _replay_once(self) -> Dict[str, Any]:
        if not self._replay_lock.acquire(blocking=False):
            return {'replayed': 0, 'remaining': self.queue.count(), 'error': None, 'skipped': True}

        replayed = 0
        error = None
        try:
            self._syncing = True
            self._emit()

            while self._online:
                entry = self.queue.head()
                if entry is None:
                    break

                try:
                    command = decode(entry['method'], entry['path'], entry['payload'])
                    result = self.executor(command)
                except Exception as e:
                    error = getattr(e, 'message', None) or str(e)
                    self.queue.record_failure(entry['id'], error)
                    offline_queue_replayed_total.labels(outcome='failed').inc()
                    logger.error(
                        f"[OFFLINE] Replay halted at #{entry['id']} {entry['method']} {entry['path']}: {error}"
                    )
                    break

                temp_id = entry.get('temp_id')
                if temp_id and isinstance(result, dict) and result.get('id') is not None:
                    self._resolved[temp_id] = result['id']
                    self.queue.rewrite_target(temp_id, result['id'])

                self.queue.remove(entry['id'])
                offline_queue_replayed_total.labels(outcome='success').inc()
                replayed += 1
        finally:
            self._syncing = False
            self._replay_lock.release()
            self._emit()

        remaining = self.queue.count()
        logger.info(f"[OFFLINE] Replay finished: {replayed} replayed, {remaining} pending")
        return {'replayed': replayed, 'remaining': remaining, 'error': error, 'skipped': False}
