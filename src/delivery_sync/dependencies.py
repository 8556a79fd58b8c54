"""Dependency providers for request handlers."""

from __future__ import annotations

from fastapi import Request

from delivery_sync.bulk_sync import BulkSyncEngine
from delivery_sync.config import DeliverySyncConfig
from delivery_sync.history import HistoryDetailLoader, HistoryFeed
from delivery_sync.protocols import PendingStore
from delivery_sync.submission import SubmissionEngine


def get_config(request: Request) -> DeliverySyncConfig:
    """Read config from FastAPI app state."""
    return request.app.state.delivery_sync_config


def get_submission(request: Request) -> SubmissionEngine:
    """Read submission engine from FastAPI app state."""
    return request.app.state.delivery_sync_submission


def get_bulk_sync(request: Request) -> BulkSyncEngine:
    """Read bulk sync engine from FastAPI app state."""
    return request.app.state.delivery_sync_bulk_sync


def get_pending_store(request: Request) -> PendingStore:
    """Read pending queue store from FastAPI app state."""
    return request.app.state.delivery_sync_pending_store


def get_history_feed(request: Request) -> HistoryFeed:
    """Read history feed from FastAPI app state."""
    return request.app.state.delivery_sync_history


def get_detail_loader(request: Request) -> HistoryDetailLoader:
    """Read history detail loader from FastAPI app state."""
    return request.app.state.delivery_sync_detail_loader
