"""Command-line interface for the face registration engine."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from face_register.config import Paths, get_data_dir_from_env, match_config_from_env
from face_register.core.exceptions import FaceRegisterError
from face_register.core.logger import setup_logging
from face_register.core.registry import FaceRegistry
from face_register.core.registry_store import JsonRegistryStore
from face_register.core.session import RegistrationSession
from face_register.core.types import Face
from face_register.pipelines.replay import names_resolver, replay_log

app = typer.Typer(help="Face registration engine: align, match and register faces.")


def _load_registry(data_dir: Optional[Path]) -> FaceRegistry:
    if data_dir is None:
        data_dir = get_data_dir_from_env()
    paths = Paths(data_dir=data_dir)
    return FaceRegistry.from_store(JsonRegistryStore(paths.registry_file))


def _prompt_name(face: Face) -> Optional[str]:
    text = typer.prompt(
        f"Enter face name for {face.face_id} (blank to cancel)",
        default="",
        show_default=False,
    )
    return text or None


@app.callback()
def main(
    log_level: str = typer.Option("INFO", envvar="LOG_LEVEL"),
    log_file: Optional[Path] = typer.Option(None, envvar="LOG_FILE"),
) -> None:
    """Configure logging for every command."""
    setup_logging(log_level=log_level, log_file=log_file)


@app.command()
def serve(
    host: str = "0.0.0.0",
    port: int = 5000,
    data_dir: Optional[Path] = None,
    debug: bool = False,
) -> None:
    """Start the Flask web API server."""
    from face_register.web.app import run_server

    if data_dir is None:
        data_dir = get_data_dir_from_env()

    typer.echo(f"🌐 Starting HTTP server on http://{host}:{port}")
    typer.echo(f"Data directory: {data_dir}")

    run_server(host=host, port=port, data_dir=data_dir, debug=debug)


@app.command()
def target(
    width: float,
    height: float,
) -> None:
    """Print the target region for a viewport of WIDTH x HEIGHT pixels."""
    try:
        region = match_config_from_env().target_region(width, height)
    except FaceRegisterError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(region.to_dict(), indent=2))


@app.command()
def faces(
    data_dir: Optional[Path] = None,
) -> None:
    """List registered faces."""
    try:
        registry = _load_registry(data_dir)
    except FaceRegisterError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    entries = [{"face_id": face_id, "name": name} for face_id, name in registry.items()]
    typer.echo(json.dumps({"faces": entries, "total": len(entries)}, indent=2))


@app.command()
def replay(
    log: Path,
    width: float = typer.Option(..., help="Viewport width in pixels."),
    height: float = typer.Option(..., help="Viewport height in pixels."),
    data_dir: Optional[Path] = None,
    names: Optional[Path] = typer.Option(
        None, help="JSON object mapping face ids to names for the name dialog."
    ),
    prompt: bool = typer.Option(
        False, help="Ask for a name on the terminal when the dialog opens."
    ),
    frames_dir: Optional[Path] = None,
    output_json: Optional[Path] = None,
) -> None:
    """Replay a JSON-lines detection log through a registration session."""
    try:
        config = match_config_from_env()
        registry = _load_registry(data_dir)
        session = RegistrationSession(
            target=config.target_region(width, height),
            registry=registry,
            tolerance=config.tolerance,
        )
    except FaceRegisterError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    resolve_name = None
    if names is not None:
        resolve_name = names_resolver(json.loads(names.read_text(encoding="utf-8")))
    elif prompt:
        resolve_name = _prompt_name

    try:
        results = replay_log(
            session=session,
            log_path=log,
            resolve_name=resolve_name,
            frames_dir=frames_dir,
            viewport=(int(width), int(height)) if frames_dir else None,
        )
    except FaceRegisterError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if output_json:
        output_json.parent.mkdir(parents=True, exist_ok=True)
        output_json.write_text(json.dumps(results, indent=2), encoding="utf-8")
        typer.echo(f"Wrote results to: {output_json}")

    typer.echo(json.dumps(results, indent=2))
