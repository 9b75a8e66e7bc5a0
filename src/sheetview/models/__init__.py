from __future__ import annotations

from sheetview.models.cache import Snapshot, TabDescriptor, TabListing, TabPayload
from sheetview.models.sos import SOSRecord, SOSTabOutput

__all__ = [
    # cache
    "TabDescriptor",
    "Snapshot",
    "TabListing",
    "TabPayload",
    # sos
    "SOSRecord",
    "SOSTabOutput",
]
