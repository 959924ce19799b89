"""
Command boundary.

Every mutating call is decoded once from verb + path + payload into a
command object. The HTTP blueprints, the connectivity gate and the
offline replay all hand these commands to the same CommandExecutor.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple, Union

from ryme.exceptions import ValidationError, NotFoundError
from ryme.services import (
    activity_log_service, dashboard_service, order_service, product_service, recycle_bin_service
)
from ryme.services.stock_ledger import mark_order_paid
from ryme.utils.formatters import to_json_safe

logger = logging.getLogger(__name__)

ResourceId = Union[int, str]


# =====================================================
# COMMANDS
# =====================================================

@dataclass(frozen=True)
class Command:
    """Base class. `topics` are the read collections a command changes."""
    type: ClassVar[str] = 'command'
    method: ClassVar[str] = 'POST'
    topics: ClassVar[Tuple[str, ...]] = ()
    creates: ClassVar[bool] = False

    @property
    def path(self) -> str:
        raise NotImplementedError

    @property
    def target_id(self) -> Optional[ResourceId]:
        return None

    def body(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class CreateProduct(Command):
    payload: Dict[str, Any] = field(default_factory=dict)
    type: ClassVar[str] = 'create_product'
    topics: ClassVar[Tuple[str, ...]] = ('products',)
    creates: ClassVar[bool] = True

    @property
    def path(self):
        return '/products'

    def body(self):
        return dict(self.payload)


@dataclass(frozen=True)
class UpdateProduct(Command):
    product_id: ResourceId = None
    payload: Dict[str, Any] = field(default_factory=dict)
    type: ClassVar[str] = 'update_product'
    method: ClassVar[str] = 'PUT'
    topics: ClassVar[Tuple[str, ...]] = ('products',)

    @property
    def path(self):
        return f'/products/{self.product_id}'

    @property
    def target_id(self):
        return self.product_id

    def body(self):
        return dict(self.payload)


@dataclass(frozen=True)
class DeleteProduct(Command):
    product_id: ResourceId = None
    type: ClassVar[str] = 'delete_product'
    method: ClassVar[str] = 'DELETE'
    topics: ClassVar[Tuple[str, ...]] = ('products',)

    @property
    def path(self):
        return f'/products/{self.product_id}'

    @property
    def target_id(self):
        return self.product_id


@dataclass(frozen=True)
class CreateOrder(Command):
    payload: Dict[str, Any] = field(default_factory=dict)
    type: ClassVar[str] = 'create_order'
    topics: ClassVar[Tuple[str, ...]] = ('orders', 'dashboard')
    creates: ClassVar[bool] = True

    @property
    def path(self):
        return '/orders'

    def body(self):
        return dict(self.payload)


@dataclass(frozen=True)
class UpdateOrder(Command):
    order_id: ResourceId = None
    payload: Dict[str, Any] = field(default_factory=dict)
    type: ClassVar[str] = 'update_order'
    method: ClassVar[str] = 'PUT'
    topics: ClassVar[Tuple[str, ...]] = ('orders', 'dashboard')

    @property
    def path(self):
        return f'/orders/{self.order_id}'

    @property
    def target_id(self):
        return self.order_id

    def body(self):
        return dict(self.payload)


@dataclass(frozen=True)
class MarkOrderPaid(Command):
    order_id: ResourceId = None
    type: ClassVar[str] = 'mark_order_paid'
    method: ClassVar[str] = 'PUT'
    topics: ClassVar[Tuple[str, ...]] = ('orders', 'products', 'dashboard')

    @property
    def path(self):
        return f'/orders/{self.order_id}'

    @property
    def target_id(self):
        return self.order_id

    def body(self):
        return {'action': 'mark_paid'}


@dataclass(frozen=True)
class DeleteOrder(Command):
    order_id: ResourceId = None
    type: ClassVar[str] = 'delete_order'
    method: ClassVar[str] = 'DELETE'
    topics: ClassVar[Tuple[str, ...]] = ('orders', 'recycle_bin', 'dashboard')

    @property
    def path(self):
        return f'/orders/{self.order_id}'

    @property
    def target_id(self):
        return self.order_id


@dataclass(frozen=True)
class BulkDeleteOrders(Command):
    order_ids: Tuple[ResourceId, ...] = ()
    type: ClassVar[str] = 'bulk_delete_orders'
    topics: ClassVar[Tuple[str, ...]] = ('orders', 'recycle_bin', 'dashboard')

    @property
    def path(self):
        return '/orders/bulk-delete'

    def body(self):
        return {'ids': list(self.order_ids)}


@dataclass(frozen=True)
class RestoreRecycleEntry(Command):
    entry_id: ResourceId = None
    type: ClassVar[str] = 'restore_recycle_entry'
    topics: ClassVar[Tuple[str, ...]] = ('orders', 'recycle_bin', 'dashboard')

    @property
    def path(self):
        return f'/recycle-bin/{self.entry_id}/restore'

    @property
    def target_id(self):
        return self.entry_id


@dataclass(frozen=True)
class PurgeRecycleEntry(Command):
    entry_id: ResourceId = None
    type: ClassVar[str] = 'purge_recycle_entry'
    method: ClassVar[str] = 'DELETE'
    topics: ClassVar[Tuple[str, ...]] = ('recycle_bin',)

    @property
    def path(self):
        return f'/recycle-bin/{self.entry_id}'

    @property
    def target_id(self):
        return self.entry_id


@dataclass(frozen=True)
class SweepRecycleBin(Command):
    type: ClassVar[str] = 'sweep_recycle_bin'
    topics: ClassVar[Tuple[str, ...]] = ('recycle_bin',)

    @property
    def path(self):
        return '/recycle-bin/sweep'


# =====================================================
# DECODING
# =====================================================

def _resource_id(segment: str) -> ResourceId:
    """Numeric ids become ints; anything else (e.g. offline temp ids) stays a string."""
    return int(segment) if segment.isdigit() else segment


def _segments(path: str) -> List[str]:
    return [s for s in (path or '').split('?')[0].strip('/').split('/') if s]


def decode(method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Command:
    """
    Decode a verb + path + payload call into a command.

    Raises:
        ValidationError: unknown endpoint
    """
    method = (method or '').upper()
    payload = payload or {}
    parts = _segments(path)

    if parts[:1] == ['products']:
        if method == 'POST' and len(parts) == 1:
            return CreateProduct(payload=payload)
        if method == 'PUT' and len(parts) == 2:
            return UpdateProduct(product_id=_resource_id(parts[1]), payload=payload)
        if method == 'DELETE' and len(parts) == 2:
            return DeleteProduct(product_id=_resource_id(parts[1]))

    elif parts[:1] == ['orders']:
        if method == 'POST' and len(parts) == 1:
            return CreateOrder(payload=payload)
        if method == 'POST' and parts[1:] == ['bulk-delete']:
            ids = payload.get('ids') or []
            if not isinstance(ids, list):
                raise ValidationError('ids must be a list')
            return BulkDeleteOrders(order_ids=tuple(_resource_id(str(i)) for i in ids))
        if method == 'PUT' and len(parts) == 2:
            if payload.get('action') == 'mark_paid':
                return MarkOrderPaid(order_id=_resource_id(parts[1]))
            return UpdateOrder(order_id=_resource_id(parts[1]), payload=payload)
        if method == 'DELETE' and len(parts) == 2:
            return DeleteOrder(order_id=_resource_id(parts[1]))

    elif parts[:1] == ['recycle-bin']:
        if method == 'POST' and parts[1:] == ['sweep']:
            return SweepRecycleBin()
        if method == 'POST' and len(parts) == 3 and parts[2] == 'restore':
            return RestoreRecycleEntry(entry_id=_resource_id(parts[1]))
        if method == 'DELETE' and len(parts) == 2:
            return PurgeRecycleEntry(entry_id=_resource_id(parts[1]))

    raise ValidationError(f'Unknown {method} endpoint: {path}')


def encode(command: Command) -> Tuple[str, str, Dict[str, Any]]:
    """Inverse of decode: (method, path, payload)."""
    return command.method, command.path, command.body()


READ_TOPICS = {
    'products': 'products',
    'orders': 'orders',
    'dashboard-stats': 'dashboard',
    'recycle-bin': 'recycle_bin',
    'activity-log': 'activity_log',
}


def read_topic(path: str) -> str:
    """Collection a read path depends on."""
    parts = _segments(path)
    if not parts or parts[0] not in READ_TOPICS:
        raise ValidationError(f'Unknown GET endpoint: {path}')
    return READ_TOPICS[parts[0]]


# =====================================================
# EXECUTION
# =====================================================

def _require_id(value: ResourceId, label: str) -> int:
    if isinstance(value, int):
        return value
    raise NotFoundError(f'{label} {value} not found')


class CommandExecutor:
    """
    Runs commands and reads against the store.

    Args:
        session_factory: returns the SQLAlchemy session to use
        hub: optional LiveQueryHub notified after each mutation
        cache: optional CacheService; the dashboard module is invalidated on mutations
        settings: app config subset (MARK_PAID_*, RECYCLE_BIN_TTL_DAYS, CACHE_DASHBOARD_TTL)
    """

    def __init__(self, session_factory: Callable[[], Any], hub=None, cache=None,
                 settings: Optional[Dict[str, Any]] = None):
        self.session_factory = session_factory
        self.hub = hub
        self.cache = cache
        self.settings = settings or {}
        self._handlers = {
            CreateProduct: self._create_product,
            UpdateProduct: self._update_product,
            DeleteProduct: self._delete_product,
            CreateOrder: self._create_order,
            UpdateOrder: self._update_order,
            MarkOrderPaid: self._mark_order_paid,
            DeleteOrder: self._delete_order,
            BulkDeleteOrders: self._bulk_delete_orders,
            RestoreRecycleEntry: self._restore_entry,
            PurgeRecycleEntry: self._purge_entry,
            SweepRecycleBin: self._sweep,
        }

    def __call__(self, command: Command) -> Any:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise ValidationError(f'Unsupported command: {command.type}')

        result = handler(self.session_factory(), command)
        self._after_mutation(command)
        return to_json_safe(result)

    def _after_mutation(self, command: Command) -> None:
        topics = set(command.topics) | {'activity_log'}
        if self.cache is not None and 'dashboard' in topics:
            self.cache.invalidate_module('dashboard')
        if self.hub is not None:
            self.hub.notify(topics)

    # ---- products ----

    def _create_product(self, session, command):
        return product_service.create_product(session, command.payload).to_dict()

    def _update_product(self, session, command):
        product_id = _require_id(command.product_id, 'Product')
        return product_service.update_product(session, product_id, command.payload).to_dict()

    def _delete_product(self, session, command):
        return product_service.delete_product(session, _require_id(command.product_id, 'Product'))

    # ---- orders ----

    def _create_order(self, session, command):
        payload = command.payload
        return order_service.create_order(
            session,
            payload.get('customer_name'),
            payload.get('items'),
            customer_address=payload.get('customer_address'),
            discount=payload.get('discount'),
        ).to_dict()

    def _update_order(self, session, command):
        payload = command.payload
        return order_service.update_order(
            session,
            _require_id(command.order_id, 'Order'),
            payload.get('customer_name'),
            payload.get('items'),
            customer_address=payload.get('customer_address'),
            discount=payload.get('discount'),
        ).to_dict()

    def _mark_order_paid(self, session, command):
        return mark_order_paid(
            session,
            _require_id(command.order_id, 'Order'),
            attempts=self.settings.get('MARK_PAID_MAX_ATTEMPTS', 5),
            backoff_base=self.settings.get('MARK_PAID_RETRY_BACKOFF', 0.05),
        ).to_dict()

    def _delete_order(self, session, command):
        return order_service.delete_order(
            session,
            _require_id(command.order_id, 'Order'),
            ttl_days=self.settings.get('RECYCLE_BIN_TTL_DAYS'),
        )

    def _bulk_delete_orders(self, session, command):
        ttl_days = self.settings.get('RECYCLE_BIN_TTL_DAYS')
        results = []
        for order_id in command.order_ids:
            if isinstance(order_id, int):
                results.extend(order_service.delete_orders(session, [order_id], ttl_days=ttl_days))
            else:
                results.append({'id': order_id, 'success': False, 'error': f'Order {order_id} not found'})
        return {'results': results}

    # ---- recycle bin ----

    def _restore_entry(self, session, command):
        return recycle_bin_service.restore_entry(session, _require_id(command.entry_id, 'Item')).to_dict()

    def _purge_entry(self, session, command):
        return recycle_bin_service.purge_entry(session, _require_id(command.entry_id, 'Item'))

    def _sweep(self, session, command):
        return {'deleted': recycle_bin_service.sweep_expired(session)}

    # ---- reads ----

    def read(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Full result of a read path (GET and live queries share this).

        Single-resource paths return None when the resource is missing.
        """
        params = params or {}
        session = self.session_factory()
        parts = _segments(path)
        topic = read_topic(path)

        if topic == 'products':
            if len(parts) == 1:
                return to_json_safe([p.to_dict() for p in product_service.list_products(session)])
            product_id = _resource_id(parts[1])
            product = session.get(product_service.Product, product_id) if isinstance(product_id, int) else None
            return to_json_safe(product.to_dict()) if product else None

        if topic == 'orders':
            if len(parts) == 1:
                return to_json_safe([o.to_dict() for o in order_service.list_orders(session)])
            order_id = _resource_id(parts[1])
            order = session.get(order_service.Order, order_id) if isinstance(order_id, int) else None
            return to_json_safe(order.to_dict()) if order else None

        if topic == 'dashboard':
            return to_json_safe(dashboard_service.get_dashboard_stats(
                session, cache=self.cache, ttl=self.settings.get('CACHE_DASHBOARD_TTL')
            ))

        if topic == 'recycle_bin':
            return to_json_safe([e.to_dict() for e in recycle_bin_service.list_entries(session)])

        try:
            limit = int(params.get('limit', 100))
            offset = int(params.get('offset', 0))
        except (TypeError, ValueError):
            raise ValidationError('limit and offset must be integers')

        entries = activity_log_service.get_activity_log(
            session,
            limit=limit,
            offset=offset,
            action_filter=params.get('action'),
            entity_type_filter=params.get('entity_type'),
        )
        return [entry.to_dict() for entry in entries]
