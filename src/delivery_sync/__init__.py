"""Offline-resilient delivery submission, queue sync and history cache."""

from typing import TYPE_CHECKING

__version__ = "0.1.0"

__all__ = [
    "BulkSyncEngine",
    "DeliveryApiClient",
    "DeliveryRecord",
    "DeliverySyncConfig",
    "HistoryFeed",
    "HistoryPager",
    "PendingDeliveryNotFoundError",
    "SubmissionEngine",
    "__version__",
    "classify",
    "create_delivery_router",
    "create_services",
    "register_exception_handlers",
]

if TYPE_CHECKING:
    from delivery_sync.bulk_sync import BulkSyncEngine
    from delivery_sync.classifier import classify
    from delivery_sync.config import DeliverySyncConfig
    from delivery_sync.exceptions import (
        PendingDeliveryNotFoundError,
        register_exception_handlers,
    )
    from delivery_sync.history import HistoryFeed
    from delivery_sync.paging import HistoryPager
    from delivery_sync.router import create_delivery_router
    from delivery_sync.services import create_services
    from delivery_sync.submission import SubmissionEngine
    from delivery_sync.transport import DeliveryApiClient
    from delivery_sync.types import DeliveryRecord

_LAZY = {
    "BulkSyncEngine": "delivery_sync.bulk_sync",
    "DeliveryApiClient": "delivery_sync.transport",
    "DeliveryRecord": "delivery_sync.types",
    "DeliverySyncConfig": "delivery_sync.config",
    "HistoryFeed": "delivery_sync.history",
    "HistoryPager": "delivery_sync.paging",
    "PendingDeliveryNotFoundError": "delivery_sync.exceptions",
    "SubmissionEngine": "delivery_sync.submission",
    "classify": "delivery_sync.classifier",
    "create_delivery_router": "delivery_sync.router",
    "create_services": "delivery_sync.services",
    "register_exception_handlers": "delivery_sync.exceptions",
}


def __getattr__(name: str):
    # Lazy imports to avoid loading all submodules on package import.
    module_name = _LAZY.get(name)
    if module_name is None:
        raise AttributeError(
            f"module 'delivery_sync' has no attribute {name!r}"
        )
    from importlib import import_module

    return getattr(import_module(module_name), name)
