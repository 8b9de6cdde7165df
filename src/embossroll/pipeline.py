"""Config → heightmap → displaced positive/negative meshes, with debounced regeneration."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.panel import Panel

from embossroll.config import PatternConfig
from embossroll.io.stl import write_stl
from embossroll.mesh import Mesh
from embossroll.modeling.cylinder import DEFAULT_CYLINDER, CylinderSettings, build_cylinder_solid
from embossroll.modeling.heightmap import DEFAULT_RULES, DisplacementRules, Heightmap, displace_shell
from embossroll.modeling.raster import PatternLoadError, rasterize_config

TEXTURE_SIZE = 4096
DEBOUNCE_SECONDS = 0.5
POSITIVE_COLOR = (0.231, 0.510, 0.965, 1.0)
NEGATIVE_COLOR = (0.937, 0.267, 0.267, 1.0)
EXPORT_PREFIX = "embossed_cylinder_set"

CancelCheck = Callable[[], bool]


class ExportNotReadyError(RuntimeError):
    """Raised when an export is requested before any mesh pair was committed."""


class PipelineState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    GENERATING = "generating"


@dataclass(frozen=True)
class MeshPair:
    """One committed generation: the config it came from and both solids."""

    config: PatternConfig
    heightmap: Heightmap
    positive: Mesh
    negative: Mesh
    cycle_id: int = 0

    @property
    def display_offset(self) -> float:
        return 2.5 * self.config.radius + 20.0

    def placed(self) -> tuple[Mesh, Mesh]:
        """Copies of both solids moved apart on X, as shown and exported."""

        half = self.display_offset / 2.0
        return (
            self.positive.translate((-half, 0.0, 0.0), inplace=False),
            self.negative.translate((half, 0.0, 0.0), inplace=False),
        )


def _never_cancelled() -> bool:
    return False


def build_displaced_solid(
    radius: float,
    height: float,
    heightmap: Heightmap,
    depth: float,
    cylinder: CylinderSettings = DEFAULT_CYLINDER,
    rules: DisplacementRules = DEFAULT_RULES,
) -> Mesh:
    solid = build_cylinder_solid(radius, height, cylinder)
    return displace_shell(solid, heightmap, depth, radius * cylinder.protect_radius_factor, rules)


def generate_mesh_pair(
    config: PatternConfig,
    texture_size: int = TEXTURE_SIZE,
    cylinder: CylinderSettings = DEFAULT_CYLINDER,
    rules: DisplacementRules = DEFAULT_RULES,
    is_cancelled: CancelCheck = _never_cancelled,
    cycle_id: int = 0,
) -> MeshPair | None:
    """Run one full generation; return ``None`` as soon as a cancellation check fires.

    The positive solid is built at the cylinder radius and embossed outward;
    the negative is built ``emboss_depth`` wider and engraved inward by the
    same amount, so the two nest with zero gap.
    """

    heightmap = rasterize_config(config, texture_size)
    if is_cancelled():
        return None

    positive = build_displaced_solid(
        config.radius, config.height, heightmap, config.emboss_depth, cylinder, rules
    )
    positive.color = POSITIVE_COLOR
    if is_cancelled():
        return None

    negative = build_displaced_solid(
        config.negative_radius, config.height, heightmap, -config.emboss_depth, cylinder, rules
    )
    negative.color = NEGATIVE_COLOR
    if is_cancelled():
        return None

    return MeshPair(config=config, heightmap=heightmap, positive=positive, negative=negative, cycle_id=cycle_id)


def export_filename(timestamp: float | None = None) -> str:
    stamp = time.time() if timestamp is None else timestamp
    return f"{EXPORT_PREFIX}_{int(stamp * 1000)}.stl"


def export_mesh_pair(
    pair: MeshPair,
    directory: Path,
    ascii: bool = False,
    timestamp: float | None = None,
) -> Path:
    """Write both placed solids of ``pair`` into one timestamped STL inside ``directory``."""

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(timestamp)
    write_stl(pair.placed(), path, ascii=ascii)
    return path


class PipelineOrchestrator:
    """Debounce configuration changes and regenerate the mesh pair in the background.

    Every ``submit`` issues a new cycle id and restarts the debounce timer.
    When the timer fires the cycle runs on its own thread; it commits only if
    no newer cycle was issued meanwhile, so a superseded cycle never replaces
    a newer pair. The committed pair is swapped in whole under a lock.
    """

    def __init__(
        self,
        texture_size: int = TEXTURE_SIZE,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        cylinder: CylinderSettings = DEFAULT_CYLINDER,
        rules: DisplacementRules = DEFAULT_RULES,
        on_busy: Callable[[bool], None] | None = None,
        on_commit: Callable[[MeshPair], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        console: Console | None = None,
    ) -> None:
        if texture_size <= 0:
            raise ValueError("texture_size must be positive.")
        if debounce_seconds < 0:
            raise ValueError("debounce_seconds must be >= 0.")
        self.texture_size = int(texture_size)
        self.debounce_seconds = float(debounce_seconds)
        self.cylinder = cylinder
        self.rules = rules
        self.console = console
        self._on_busy = on_busy
        self._on_commit = on_commit
        self._on_error = on_error

        self._lock = threading.RLock()
        self._generation_lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._timer: threading.Timer | None = None
        self._latest_cycle = 0
        self._state = PipelineState.IDLE
        self._busy = False
        self._committed: MeshPair | None = None
        self._last_error: BaseException | None = None
        self._closed = False

    # Public API -----------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        with self._lock:
            return self._state

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy

    @property
    def committed(self) -> MeshPair | None:
        with self._lock:
            return self._committed

    @property
    def last_error(self) -> BaseException | None:
        with self._lock:
            return self._last_error

    def submit(self, config: PatternConfig) -> int:
        """Record a configuration change and (re)start the debounce window."""

        with self._lock:
            if self._closed:
                raise RuntimeError("PipelineOrchestrator is closed.")
            self._latest_cycle += 1
            cycle_id = self._latest_cycle
            if self._timer is not None:
                self._timer.cancel()
            self._state = PipelineState.DEBOUNCING
            self._idle.clear()
            self._set_busy(True)
            timer = threading.Timer(self.debounce_seconds, self._run_cycle, args=(cycle_id, config))
            timer.name = f"embossroll-cycle-{cycle_id}"
            timer.daemon = True
            self._timer = timer
            timer.start()
        return cycle_id

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until the latest submission committed, failed, or was closed."""

        return self._idle.wait(timeout)

    def export(self, directory: Path, ascii: bool = False) -> Path:
        pair = self.committed
        if pair is None:
            raise ExportNotReadyError("Geometry not ready yet.")
        return export_mesh_pair(pair, directory, ascii=ascii)

    def close(self) -> None:
        """Cancel pending work; in-flight cycles finish without committing."""

        with self._lock:
            self._closed = True
            self._latest_cycle += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._state = PipelineState.IDLE
            self._set_busy(False)
            self._idle.set()

    # Internal helpers -----------------------------------------------------

    def _is_stale(self, cycle_id: int) -> bool:
        with self._lock:
            return cycle_id != self._latest_cycle

    def _set_busy(self, busy: bool) -> None:
        if busy == self._busy:
            return
        self._busy = busy
        if self._on_busy is not None:
            self._on_busy(busy)

    def _print(self, message: str) -> None:
        if self.console is not None:
            self.console.print(message)

    def _run_cycle(self, cycle_id: int, config: PatternConfig) -> None:
        with self._generation_lock:
            with self._lock:
                if self._is_stale(cycle_id):
                    return
                self._state = PipelineState.GENERATING
            self._print(f"[yellow]Generating cycle {cycle_id}…[/yellow]")
            started = time.perf_counter()
            try:
                pair = generate_mesh_pair(
                    config,
                    texture_size=self.texture_size,
                    cylinder=self.cylinder,
                    rules=self.rules,
                    is_cancelled=lambda: self._is_stale(cycle_id),
                    cycle_id=cycle_id,
                )
            except PatternLoadError as exc:
                self._fail(cycle_id, exc, title="Pattern load failed")
                return
            except Exception as exc:  # pragma: no cover - surfaced via on_error/console
                self._fail(cycle_id, exc, title="Generation failed")
                return

        if pair is None:
            self._print(f"[dim]Cycle {cycle_id} superseded.[/dim]")
            return
        with self._lock:
            if self._is_stale(cycle_id):
                return
            self._committed = pair
            self._last_error = None
            self._state = PipelineState.IDLE
            self._set_busy(False)
        elapsed = time.perf_counter() - started
        self._print(f"[green]Committed cycle {cycle_id} in {elapsed:.2f}s[/green]")
        try:
            if self._on_commit is not None:
                self._on_commit(pair)
        finally:
            self._mark_idle(cycle_id)

    def _fail(self, cycle_id: int, exc: BaseException, title: str) -> None:
        with self._lock:
            if self._is_stale(cycle_id):
                return
            self._last_error = exc
            self._state = PipelineState.IDLE
            self._set_busy(False)
        if self.console is not None:
            self.console.print(Panel.fit(str(exc), title=title, style="red"))
        try:
            if self._on_error is not None:
                self._on_error(exc)
        finally:
            self._mark_idle(cycle_id)

    def _mark_idle(self, cycle_id: int) -> None:
        # callbacks have run; a newer submission keeps waiters blocked
        with self._lock:
            if not self._is_stale(cycle_id):
                self._idle.set()


__all__ = [
    "DEBOUNCE_SECONDS",
    "ExportNotReadyError",
    "MeshPair",
    "PipelineOrchestrator",
    "PipelineState",
    "TEXTURE_SIZE",
    "build_displaced_solid",
    "export_filename",
    "export_mesh_pair",
    "generate_mesh_pair",
]
