"""Store-facing service layer: the content store interface and its adapters."""

from cutboard_browser.services.events import (
    CONTENT_CHANGED_EVENT,
    EXPORT_PROGRESS_EVENT,
    EventHub,
    Subscription,
)
from cutboard_browser.services.http_store import HttpContentStore
from cutboard_browser.services.image_service import ImagePreviewLoader, default_image_cache
from cutboard_browser.services.interfaces import ContentStore, StoreError

__all__ = [
    "CONTENT_CHANGED_EVENT",
    "EXPORT_PROGRESS_EVENT",
    "ContentStore",
    "EventHub",
    "HttpContentStore",
    "ImagePreviewLoader",
    "StoreError",
    "Subscription",
    "default_image_cache",
]
