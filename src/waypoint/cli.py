"""Waypoint command-line interface powered by Typer."""

import importlib
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

app = typer.Typer(name="waypoint", add_completion=False, no_args_is_help=True)


# ------------------------------------------------------------------
# Target resolution
# ------------------------------------------------------------------


def _import_module(module_name: str) -> Any:
    try:
        return importlib.import_module(module_name)
    except Exception as exc:
        typer.echo(f"Error importing {module_name!r}: {exc}", err=True)
        raise typer.Exit(1) from exc


def _load_target(path: str) -> tuple[str, str, Any]:
    """Resolve a CLI *path* to ``(module, var, object)``.

    Accepted forms:
    - ``module:var``   → imports ``module`` and reads ``var``
    - ``file.py``      → imports ``file``, scans for a Waypoint app or Router
    """
    if ":" in path:
        module_name, _, var_name = path.partition(":")
        if str(Path.cwd()) not in sys.path:
            sys.path.insert(0, str(Path.cwd()))
        mod = _import_module(module_name)
        if not hasattr(mod, var_name):
            typer.echo(f"Error: {module_name!r} has no attribute {var_name!r}.", err=True)
            raise typer.Exit(1)
        return module_name, var_name, getattr(mod, var_name)

    file = Path(path)
    if not file.exists():
        typer.echo(f"Error: file {path!r} not found.", err=True)
        raise typer.Exit(1)

    # Ensure the file's directory is on sys.path so we can import it.
    parent = str(file.resolve().parent)
    if parent not in sys.path:
        sys.path.insert(0, parent)

    mod = _import_module(file.stem)
    var_name = _find_target_var(mod)
    if var_name is None:
        typer.echo(
            f"Error: no Waypoint app or Router found in {path!r}. Provide an explicit target, e.g. main:app",
            err=True,
        )
        raise typer.Exit(1)

    return file.stem, var_name, getattr(mod, var_name)


def _find_target_var(mod: object) -> str | None:
    """Scan a module for a ``Waypoint`` app, then for a ``Router``.

    Checks ``app``, ``application`` and ``router`` first, then falls back to
    any public attribute.
    """
    from waypoint.app import Waypoint
    from waypoint.router import Router

    for kind in (Waypoint, Router):
        for name in ("app", "application", "router"):
            if isinstance(getattr(mod, name, None), kind):
                return name
        for name in dir(mod):
            if not name.startswith("_") and isinstance(getattr(mod, name, None), kind):
                return name

    return None


def _as_router(obj: Any) -> Any:
    from waypoint.app import Waypoint
    from waypoint.router import Router

    if isinstance(obj, Waypoint):
        return obj.router
    if isinstance(obj, Router):
        return obj
    typer.echo(f"Error: {obj!r} is neither a Waypoint app nor a Router.", err=True)
    raise typer.Exit(1)


def _resolve_app_target(path: str) -> tuple[str, int]:
    from waypoint.app import Waypoint

    module_name, var_name, obj = _load_target(path)
    if not isinstance(obj, Waypoint):
        typer.echo(
            f"Error: {module_name}:{var_name} is not a Waypoint app. Wrap the router: app = Waypoint(router)",
            err=True,
        )
        raise typer.Exit(1)
    return f"{module_name}:{var_name}", len(obj.router.table)


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


@app.command()
def routes(
    path: Annotated[str, typer.Argument(help="Python file or module:var target.")] = "main.py",
) -> None:
    """List registered routes in match order."""
    router = _as_router(_load_target(path)[2])

    rows = [
        (
            route.kind,
            route.method,
            route.domain or "*",
            route.pattern.source,
            route.handler.describe(),
        )
        for route in router.routes()
    ]
    rows.extend(
        (
            "404",
            "*",
            rule.domain or "*",
            rule.pattern.source if rule.pattern is not None else "*",
            rule.handler.describe(),
        )
        for rule in router.table.not_found_rules()
    )

    if not rows:
        typer.echo("No routes registered.")
        return

    headers = ("KIND", "METHOD", "DOMAIN", "PATTERN", "HANDLER")
    widths = [max(len(str(row[i])) for row in (headers, *rows)) for i in range(len(headers) - 1)]
    for row in (headers, *rows):
        cells = [str(cell).ljust(width) for cell, width in zip(row, widths)]
        typer.echo("  ".join([*cells, str(row[-1])]))


@app.command()
def dev(
    path: Annotated[str, typer.Argument(help="Python file or module:var target.")] = "main.py",
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
    reload: Annotated[bool | None, typer.Option("--reload/--no-reload", help="Auto-reload on code changes.")] = None,
) -> None:
    """Start a development server with auto-reload and debug logging."""
    from waypoint._server import serve

    target, route_count = _resolve_app_target(path)
    serve(target, host=host, port=port, dev=True, reload=reload, route_count=route_count)


@app.command()
def run(
    path: Annotated[str, typer.Argument(help="Python file or module:var target.")] = "main.py",
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
    workers: Annotated[int, typer.Option(help="Number of worker processes.")] = 1,
) -> None:
    """Start a production server."""
    from waypoint._server import serve

    target, route_count = _resolve_app_target(path)
    serve(target, host=host, port=port, workers=workers, route_count=route_count)
