from __future__ import annotations

import math
import queue
import threading
from pathlib import Path
from typing import Callable, Iterable

from rich.console import Console
from rich.panel import Panel
from watchfiles import watch

from embossroll._config import UserSettings, get_user_settings
from embossroll.config import load_pattern_config
from embossroll.mesh import Mesh, mesh_to_pyvista
from embossroll.pipeline import MeshPair, PipelineOrchestrator

BUSY_TEXT = "Generating…"


class PreviewBackendError(RuntimeError):
    """Raised when a preview backend cannot run."""


def watch_config_file(
    config_path: Path,
    changes: "queue.Queue[float]",
    stop_event: threading.Event,
    debounce_ms: int = 50,
) -> None:
    """Push a token onto ``changes`` whenever ``config_path`` is written or replaced."""

    resolved = config_path.resolve()
    for batch in watch(str(resolved.parent), stop_event=stop_event, debounce=debounce_ms):
        if stop_event.is_set():
            return
        if any(Path(changed).resolve() == resolved for _, changed in batch):
            changes.put_nowait(0.0)


def start_config_watcher(config_path: Path, changes: "queue.Queue[float]") -> threading.Event:
    stop_event = threading.Event()
    watcher = threading.Thread(
        target=watch_config_file,
        args=(config_path, changes, stop_event),
        name="embossroll-watch",
        daemon=True,
    )
    watcher.start()
    return stop_event


def resubmit_config(orchestrator: PipelineOrchestrator, config_path: Path, console: Console) -> None:
    """Reload the JSON config and hand it to the orchestrator, reporting bad edits."""

    try:
        config = load_pattern_config(config_path)
    except (OSError, ValueError) as exc:
        console.print(Panel.fit(str(exc), title="Config reload failed", style="red"))
        return
    orchestrator.submit(config)


class PairPreviewer:
    """Show the positive/negative pair in a PyVista window, optionally live-regenerating."""

    def __init__(self, console: Console, settings: UserSettings | None = None):
        self.console = console
        self._pv = None
        self._settings = settings or get_user_settings()

    def show(self, pair: MeshPair, screenshot_path: Path | None = None, show_edges: bool = False) -> None:
        pv = self._ensure_backend()
        plotter = pv.Plotter(window_size=(1280, 800))
        self._configure_plotter(plotter)
        self._apply_pair(plotter, pair, show_edges=show_edges, align_camera=True)
        if screenshot_path is not None:
            screenshot_path.parent.mkdir(parents=True, exist_ok=True)
            plotter.show(title="embossroll preview", auto_close=True, screenshot=str(screenshot_path))
            plotter.close()
            return
        plotter.show(title="embossroll preview")
        plotter.close()

    def show_live(
        self,
        orchestrator: PipelineOrchestrator,
        config_path: Path,
        show_edges: bool = False,
        interval_seconds: float = 0.1,
    ) -> None:
        """Regenerate through ``orchestrator`` whenever the config file changes.

        The previously committed pair stays on screen while a new one is being
        built; a status line shows the busy signal.
        """

        pv = self._ensure_backend()
        plotter = pv.Plotter(window_size=(1280, 800))
        self._configure_plotter(plotter)

        changes: queue.Queue[float] = queue.Queue()
        stop_event = start_config_watcher(config_path, changes)
        shown: dict[str, object] = {"pair": None, "busy": None}

        def refresh() -> None:
            reload_requested = False
            while True:
                try:
                    changes.get_nowait()
                    reload_requested = True
                except queue.Empty:
                    break
            if reload_requested:
                self.console.print(f"[yellow]Reloading {config_path}…[/yellow]")
                resubmit_config(orchestrator, config_path, self.console)

            pair = orchestrator.committed
            if pair is not None and pair is not shown["pair"]:
                self._apply_pair(plotter, pair, show_edges=show_edges, align_camera=shown["pair"] is None)
                shown["pair"] = pair
                shown["busy"] = None
            busy = orchestrator.busy
            if busy != shown["busy"]:
                plotter.add_text(BUSY_TEXT if busy else "", name="status", position="upper_left", font_size=10)
                shown["busy"] = busy
            plotter.render()

        def guarded_refresh() -> None:
            try:
                refresh()
            except Exception as exc:  # pragma: no cover - surfaced via console
                self.console.print(Panel.fit(str(exc), title="Preview refresh failed", style="red"))

        resubmit_config(orchestrator, config_path, self.console)
        cleanup = self._install_timer_callback(plotter, guarded_refresh, interval_seconds)
        try:
            plotter.show(title="embossroll preview", auto_close=False)
        finally:
            stop_event.set()
            cleanup()
            orchestrator.close()
            plotter.close()

    # Internal helpers -----------------------------------------------------

    def _ensure_backend(self):
        if self._pv is None:
            try:
                import pyvista as pv
            except ImportError as exc:  # pragma: no cover - runtime dep
                raise PreviewBackendError(
                    "PyVista is required for previewing. Install embossroll with `pip install -e .`."
                ) from exc
            pv.set_plot_theme("document")
            self._pv = pv
        return self._pv

    def _configure_plotter(self, plotter) -> None:
        plotter.set_background("#0f172a", top="#1b2333")
        plotter.add_axes(interactive=True)

    def _apply_pair(self, plotter, pair: MeshPair, show_edges: bool, align_camera: bool) -> None:
        meshes = pair.placed()
        plotter.clear()
        plotter.add_axes(interactive=True)
        for index, mesh in enumerate(meshes):
            color = mesh.color[:3] if mesh.color is not None else "#cdd7ff"
            plotter.add_mesh(
                mesh_to_pyvista(mesh),
                name=f"mesh-{index}",
                show_edges=show_edges,
                color=color,
                smooth_shading=True,
                specular=0.2,
            )
        label = self._settings.unit_label
        plotter.show_bounds(
            grid="front",
            color="#5a677d",
            xlabel=f"X ({label})",
            ylabel=f"Y ({label})",
            zlabel=f"Z ({label})",
        )
        if align_camera:
            self._reset_camera(plotter, meshes)

    def _reset_camera(self, plotter, meshes: Iterable[Mesh]) -> None:
        bounds = None
        for mesh in meshes:
            mesh_bounds = mesh.bounds
            if bounds is None:
                bounds = list(mesh_bounds)
                continue
            for axis in range(3):
                bounds[2 * axis] = min(bounds[2 * axis], mesh_bounds[2 * axis])
                bounds[2 * axis + 1] = max(bounds[2 * axis + 1], mesh_bounds[2 * axis + 1])
        if bounds is None:
            return

        center = [(bounds[2 * axis] + bounds[2 * axis + 1]) / 2.0 for axis in range(3)]
        diag = math.sqrt(sum((bounds[2 * axis + 1] - bounds[2 * axis]) ** 2 for axis in range(3)))
        distance = max(diag, 1.0) * 1.2
        # cylinders stand on Y; look at them from the front
        camera_pos = (center[0], center[1], center[2] + distance)
        plotter.camera_position = [camera_pos, tuple(center), (0.0, 1.0, 0.0)]

    def _install_timer_callback(
        self,
        plotter,
        callback: Callable[[], None],
        interval_seconds: float,
    ) -> Callable[[], None]:
        """Install a repeating timer callback compatible with the current PyVista backend."""

        add_callback = getattr(plotter, "add_callback", None)
        if callable(add_callback):
            callback_id = add_callback(callback, interval=max(int(interval_seconds * 1000), 10))

            def cleanup() -> None:
                remove_callback = getattr(plotter, "remove_callback", None)
                if callable(remove_callback):
                    remove_callback(callback_id)

            return cleanup

        interactor = getattr(plotter, "iren", None)
        if interactor is None:
            raise PreviewBackendError("PyVista interactor unavailable; cannot attach timer callbacks.")

        timer_id = interactor.create_timer(duration=max(int(interval_seconds * 1000), 10), repeating=True)
        observer_id = interactor.add_observer("TimerEvent", lambda *_: callback())

        def cleanup() -> None:
            interactor.remove_observer(observer_id)
            interactor.destroy_timer(timer_id)

        return cleanup
