from __future__ import annotations

import pathlib
import queue
import threading
import time

import typer
from rich.console import Console
from rich.panel import Panel

from embossroll._config import UserSettings, get_user_settings
from embossroll.config import PatternConfig, PatternKind, load_pattern_config
from embossroll.modeling.raster import PatternLoadError, rasterize_config
from embossroll.pipeline import MeshPair, PipelineOrchestrator, export_mesh_pair, generate_mesh_pair
from embossroll.preview import PairPreviewer, PreviewBackendError, resubmit_config, start_config_watcher
from embossroll.validation import ValidationError

console = Console()
app = typer.Typer(help="Turn a repeating text or image pattern into nesting embossed/engraved cylinders.")


def _log_active_units(settings: UserSettings) -> None:
    if abs(settings.scale_to_mm - 1.0) < 1e-9:
        console.print(f"[magenta]Units: {settings.units} ({settings.unit_label}).[/magenta]")
    else:
        console.print(
            f"[magenta]Units: {settings.units} ({settings.unit_label}); "
            f"1 {settings.unit_label} = {settings.scale_to_mm:.4g} mm.[/magenta]"
        )


def _resolve_config(
    config_path: pathlib.Path | None,
    text: str | None = None,
    image: pathlib.Path | None = None,
    radius: float | None = None,
    height: float | None = None,
    depth: float | None = None,
    tilt: float | None = None,
) -> PatternConfig:
    try:
        config = load_pattern_config(config_path) if config_path is not None else PatternConfig()
        changes: dict[str, object] = {}
        if text is not None:
            changes.update(kind=PatternKind.TEXT, text=text)
        if image is not None:
            changes.update(kind=PatternKind.IMAGE, image=image)
        for key, value in (("radius", radius), ("height", height), ("emboss_depth", depth), ("tilt", tilt)):
            if value is not None:
                changes[key] = value
        return config.with_updates(**changes) if changes else config
    except OSError as exc:
        raise typer.BadParameter(f"Unable to read config: {exc}") from exc
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _describe(config: PatternConfig, label: str) -> str:
    pattern = repr(config.text) if config.kind is PatternKind.TEXT else str(config.image)
    return (
        f"{config.kind.value} {pattern}, radius {config.radius:g}{label}, height {config.height:g}{label}, "
        f"depth {config.emboss_depth:g}{label}, tilt {config.tilt:g}°"
    )


def _generate(config: PatternConfig, settings: UserSettings, texture_size: int | None) -> MeshPair:
    size = texture_size or settings.texture_size
    started = time.perf_counter()
    try:
        with console.status("Generating mesh pair…"):
            pair = generate_mesh_pair(
                config,
                texture_size=size,
                cylinder=settings.cylinder,
                rules=settings.displacement,
            )
    except PatternLoadError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except ValueError as exc:
        raise typer.BadParameter(f"Geometry build failed: {exc}") from exc
    if pair is None:
        raise typer.Abort()
    console.print(
        f"[cyan]Built {pair.positive.n_faces + pair.negative.n_faces} triangles "
        f"from a {size}×{size} heightmap in {time.perf_counter() - started:.2f}s.[/cyan]"
    )
    return pair


ConfigArgument = typer.Argument(None, help="JSON pattern configuration; defaults are used when omitted.")
TextOption = typer.Option(None, "--text", help="Tile this text (switches to text mode).")
ImageOption = typer.Option(None, "--image", help="Tile this bitmap (switches to image mode).")
RadiusOption = typer.Option(None, "--radius", help="Cylinder radius.")
HeightOption = typer.Option(None, "--height", help="Cylinder height.")
DepthOption = typer.Option(None, "--depth", help="Emboss depth.")
TiltOption = typer.Option(None, "--tilt", help="Per-tile rotation in degrees.")
TextureOption = typer.Option(None, "--texture-size", min=16, help="Heightmap resolution (square).")


@app.command()
def export(
    config_path: pathlib.Path | None = ConfigArgument,
    output: pathlib.Path = typer.Option(
        pathlib.Path("."), "--output", "-o", help="Directory that receives the timestamped STL."
    ),
    text: str | None = TextOption,
    image: pathlib.Path | None = ImageOption,
    radius: float | None = RadiusOption,
    height: float | None = HeightOption,
    depth: float | None = DepthOption,
    tilt: float | None = TiltOption,
    texture_size: int | None = TextureOption,
    ascii: bool = typer.Option(False, "--ascii", help="Write ASCII STL instead of binary."),
) -> None:
    """
    Generate the positive/negative pair and write both into one STL file.
    """

    settings = get_user_settings()
    config = _resolve_config(config_path, text, image, radius, height, depth, tilt)
    console.rule("embossroll export")
    _log_active_units(settings)
    console.print(_describe(config, settings.unit_label))

    pair = _generate(config, settings, texture_size)
    path = export_mesh_pair(pair, output, ascii=ascii)
    mode = "ASCII" if ascii else "binary"
    console.print(Panel(f"Wrote {mode} STL to [green]{path}[/green].", title="Export complete", border_style="green"))


@app.command()
def heightmap(
    config_path: pathlib.Path | None = ConfigArgument,
    output: pathlib.Path = typer.Option(pathlib.Path("heightmap.png"), "--output", "-o", help="PNG to write."),
    text: str | None = TextOption,
    image: pathlib.Path | None = ImageOption,
    tilt: float | None = TiltOption,
    texture_size: int | None = TextureOption,
) -> None:
    """
    Rasterize the tiled pattern and save the heightmap as a grayscale PNG.
    """

    settings = get_user_settings()
    config = _resolve_config(config_path, text, image, tilt=tilt)
    size = texture_size or settings.texture_size
    try:
        raster = rasterize_config(config, size)
    except PatternLoadError as exc:
        raise typer.BadParameter(str(exc)) from exc
    output.parent.mkdir(parents=True, exist_ok=True)
    raster.to_image().save(output)
    console.print(f"Wrote {size}×{size} heightmap to [green]{output}[/green]")


@app.command()
def watch(
    config_path: pathlib.Path = typer.Argument(..., help="JSON pattern configuration to watch."),
    output: pathlib.Path = typer.Option(
        pathlib.Path("."), "--output", "-o", help="Directory that receives an STL per committed pair."
    ),
    texture_size: int | None = TextureOption,
) -> None:
    """
    Regenerate and export whenever the configuration file changes (Ctrl+C to stop).
    """

    if not config_path.exists():
        raise typer.BadParameter(f"Config path {config_path} does not exist.")
    settings = get_user_settings()

    def on_commit(pair: MeshPair) -> None:
        path = export_mesh_pair(pair, output)
        console.print(f"[green]Exported cycle {pair.cycle_id} to {path}[/green]")

    orchestrator = PipelineOrchestrator(
        texture_size=texture_size or settings.texture_size,
        debounce_seconds=settings.debounce_seconds,
        cylinder=settings.cylinder,
        rules=settings.displacement,
        on_commit=on_commit,
        console=console,
    )
    console.rule("embossroll watch")
    _log_active_units(settings)
    console.print(f"[cyan]Watching {config_path}. Save to regenerate, Ctrl+C to stop.[/cyan]")

    changes: queue.Queue[float] = queue.Queue()
    stop_event: threading.Event = start_config_watcher(config_path, changes)
    resubmit_config(orchestrator, config_path, console)
    try:
        while True:
            try:
                changes.get(timeout=0.25)
            except queue.Empty:
                continue
            resubmit_config(orchestrator, config_path, console)
    except KeyboardInterrupt:
        console.print("[yellow]Stopping watch.[/yellow]")
    finally:
        stop_event.set()
        orchestrator.close()


@app.command()
def preview(
    config_path: pathlib.Path | None = ConfigArgument,
    live: bool = typer.Option(False, "--watch/--no-watch", help="Regenerate when the config file changes."),
    texture_size: int | None = TextureOption,
    screenshot: pathlib.Path | None = typer.Option(
        None, "--screenshot", help="Optional path to save a screenshot of the preview."
    ),
    show_edges: bool = typer.Option(False, "--show-edges/--hide-edges", help="Toggle triangle edge rendering."),
) -> None:
    """
    Open a PyVista window with the positive (left) and negative (right) cylinders.
    """

    settings = get_user_settings()
    previewer = PairPreviewer(console=console, settings=settings)
    console.rule("embossroll preview")
    _log_active_units(settings)
    try:
        if live:
            if config_path is None or not config_path.exists():
                raise typer.BadParameter("--watch needs an existing config file.")
            orchestrator = PipelineOrchestrator(
                texture_size=texture_size or settings.texture_size,
                debounce_seconds=settings.debounce_seconds,
                cylinder=settings.cylinder,
                rules=settings.displacement,
                console=console,
            )
            previewer.show_live(orchestrator, config_path, show_edges=show_edges)
            return
        pair = _generate(_resolve_config(config_path), settings, texture_size)
        previewer.show(pair, screenshot_path=screenshot, show_edges=show_edges)
    except PreviewBackendError as exc:
        raise typer.BadParameter(str(exc)) from exc


def main() -> None:  # pragma: no cover - console script entry
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
