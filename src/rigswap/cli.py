"""Click CLI entry point for rigswap developer tooling."""

from __future__ import annotations

import json
from pathlib import Path

import click

from rigswap import __version__
from rigswap.config import ConfigStore
from rigswap.errors import RigswapError
from rigswap.importer import load_meshes
from rigswap.inspection import inspect_meshes, render_text
from rigswap.registry import ModelRegistry
from rigswap.warning_policy import WARNING_CODES, WarningPolicy


def _build_warning_policy(
    warn_as_error: str | None, suppress_warning: str | None
) -> WarningPolicy | None:
    try:
        return WarningPolicy.from_code_lists(warn_as_error, suppress_warning)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version=__version__, prog_name="rigswap")
def main() -> None:
    """rigswap: graft externally rigged meshes onto a host skeleton."""


@main.command()
@click.argument("asset", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--host-bone",
    "host_bones",
    multiple=True,
    help="Host bone name, in host order. May be repeated.",
)
@click.option(
    "--host-bones-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Text file with one host bone name per line, in host order.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Inspection output format.",
)
@click.option(
    "--warn-as-error",
    "warn_as_error",
    type=str,
    default=None,
    help="Comma-separated W-codes to treat as errors (e.g. W01).",
)
@click.option(
    "--suppress-warning",
    "suppress_warning",
    type=str,
    default=None,
    help="Comma-separated W-codes to suppress (e.g. W01).",
)
def inspect(
    asset: Path,
    host_bones: tuple[str, ...] = (),
    host_bones_file: Path | None = None,
    output_format: str = "text",
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
) -> None:
    """Import a mesh asset and show its meshes, bones and remap table."""
    policy = _build_warning_policy(warn_as_error, suppress_warning)
    bones = list(host_bones)
    if host_bones_file is not None:
        try:
            text = host_bones_file.read_text(encoding="utf-8")
        except OSError as e:
            raise click.ClickException(f"Cannot read {host_bones_file}: {e}") from e
        bones.extend(line.strip() for line in text.splitlines() if line.strip())

    try:
        meshes = load_meshes(asset)
    except RigswapError as e:
        raise click.ClickException(str(e))

    try:
        payload = inspect_meshes(meshes, host_bones=bones or None, policy=policy)
    except RigswapError as e:
        raise click.ClickException(str(e))
    if output_format == "json":
        click.echo(json.dumps(payload, indent=2))
    else:
        click.echo(render_text(payload), nl=False)


@main.command()
@click.argument("models_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option(
    "--warn-as-error",
    "warn_as_error",
    type=str,
    default=None,
    help="Comma-separated W-codes to treat as errors (e.g. W04).",
)
@click.option(
    "--suppress-warning",
    "suppress_warning",
    type=str,
    default=None,
    help="Comma-separated W-codes to suppress (e.g. W04,W05).",
)
def models(
    models_dir: Path, warn_as_error: str | None = None, suppress_warning: str | None = None
) -> None:
    """List the models registered from MODELS_DIR."""
    policy = _build_warning_policy(warn_as_error, suppress_warning)
    try:
        registry = ModelRegistry(models_dir, policy=policy)
    except RigswapError as e:
        raise click.ClickException(str(e))
    for entry in registry.list_models():
        if not entry.is_custom:
            click.echo(f"{entry.name}  (built-in)")
            continue
        texture = entry.texture_path.name if entry.texture_path else "-"
        click.echo(f"{entry.name}  {entry.source_path.name}  texture={texture}")


@main.command()
def codes() -> None:
    """List the warning codes accepted by --warn-as-error and --suppress-warning."""
    for code, description in WARNING_CODES.items():
        click.echo(f"{code}  {description}")


@main.command()
@click.argument("name")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Settings file to update.",
)
@click.option(
    "--models-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Reject names not registered in this models directory.",
)
def select(name: str, config_path: Path, models_dir: Path | None = None) -> None:
    """Persist NAME as the selected model."""
    if models_dir is not None and ModelRegistry(models_dir).get_model(name) is None:
        raise click.ClickException(f"Model {name!r} not found in {models_dir}")
    try:
        store = ConfigStore(config_path)
        store.current_model = name
    except RigswapError as e:
        raise click.ClickException(str(e))
    click.echo(f"Selected: {name}")
