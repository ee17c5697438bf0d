"""
Map View Module

Ordered map commands for traced hops and a Leaflet HTML renderer.
"""

from pingscope.mapview.core import (
    escape_label,
    LeafletMap,
    MapRenderer,
    RecordingMap,
    ScriptQueue,
)

__all__ = [
    "escape_label",
    "LeafletMap",
    "MapRenderer",
    "RecordingMap",
    "ScriptQueue",
]
