"""
Map output for traced hops.

The tracer talks to any object with ``clear()`` and
``add_point(lat, lon, label)``. LeafletMap turns those calls into
script commands for a standalone Leaflet page; commands issued before
the page exists are held in a ScriptQueue and replayed in order once
it is ready.
"""

import html
import json
import logging
from pathlib import Path
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class MapRenderer(Protocol):
    def clear(self) -> None:
        ...

    def add_point(self, lat: float, lon: float, label: str) -> None:
        ...


def escape_label(*parts: str) -> str:
    """HTML-escape each part and join them with line breaks."""
    return "<br>".join(html.escape(str(part), quote=True) for part in parts)


class ScriptQueue:
    """FIFO of script commands gated on a one-time readiness signal."""

    def __init__(self):
        self._pending: list[str] = []
        self._executor: Callable[[str], None] | None = None

    @property
    def ready(self) -> bool:
        return self._executor is not None

    @property
    def pending(self) -> list[str]:
        return list(self._pending)

    def submit(self, script: str) -> None:
        if self._executor is not None:
            self._executor(script)
        else:
            self._pending.append(script)

    def mark_ready(self, executor: Callable[[str], None]) -> None:
        """Flush queued commands through ``executor``; later calls are no-ops."""
        if self._executor is not None:
            return
        self._executor = executor
        pending, self._pending = self._pending, []
        logger.debug(f"Map ready, flushing {len(pending)} queued commands")
        for script in pending:
            executor(script)


class RecordingMap:
    """In-memory renderer that keeps the command sequence."""

    def __init__(self):
        self.commands: list[tuple] = []

    def clear(self) -> None:
        self.commands.append(("clear",))

    def add_point(self, lat: float, lon: float, label: str) -> None:
        self.commands.append(("add_point", lat, lon, label))

    @property
    def points(self) -> list[tuple[float, float, str]]:
        return [c[1:] for c in self.commands if c[0] == "add_point"]


LEAFLET_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <title>{title}</title>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css" />
    <script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
    <style>
        body {{ margin: 0; padding: 0; }}
        #map {{ height: 100vh; width: 100vw; background: #aad3df; }}
    </style>
</head>
<body>
    <div id="map"></div>
    <script>
        var map = L.map('map').setView([20, 0], 2);
        L.tileLayer('https://{{s}}.tile.openstreetmap.org/{{z}}/{{x}}/{{y}}.png', {{
            maxZoom: 19,
            attribution: '&copy; OpenStreetMap'
        }}).addTo(map);

        var markers = [];
        var path = L.polyline([], {{color: 'red'}}).addTo(map);

        function clearMap() {{
            markers.forEach(function(m) {{ map.removeLayer(m); }});
            markers = [];
            path.setLatLngs([]);
            map.setView([20, 0], 2);
        }}

        function addHop(lat, lon, label) {{
            var marker = L.marker([lat, lon]).addTo(map).bindPopup(label);
            markers.push(marker);
            path.addLatLng([lat, lon]);
            if (markers.length > 1) {{
                map.fitBounds(path.getBounds(), {{ padding: [50, 50] }});
            }} else {{
                map.setView([lat, lon], 4);
            }}
        }}
    </script>
    <script>
{commands}
    </script>
</body>
</html>
"""


class LeafletMap:
    """Renders hop points as a standalone Leaflet HTML page.

    The page counts as ready the first time it is rendered; anything
    issued earlier is queued and replayed ahead of later commands.
    """

    def __init__(self, title: str = "Traceroute"):
        self.title = title
        self._queue = ScriptQueue()
        self._executed: list[str] = []

    @property
    def scripts(self) -> list[str]:
        """Commands that reached the page, in order."""
        return list(self._executed)

    def clear(self) -> None:
        self._queue.submit("clearMap();")

    def add_point(self, lat: float, lon: float, label: str) -> None:
        # repr keeps '.' as decimal separator regardless of locale
        label_js = json.dumps(label).replace("</", "<\\/")
        self._queue.submit(f"addHop({float(lat)!r}, {float(lon)!r}, {label_js});")

    def render(self) -> str:
        self._queue.mark_ready(self._executed.append)
        commands = "\n".join(f"        {script}" for script in self._executed)
        return LEAFLET_TEMPLATE.format(title=html.escape(self.title), commands=commands)

    def save(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(), encoding="utf-8")
        logger.info(f"Map with {len(self._executed)} commands written to {path}")
        return path
