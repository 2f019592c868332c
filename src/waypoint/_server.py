from typing import Any

import typer


def serve(
    target: str,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    dev: bool = False,
    reload: bool | None = None,
    workers: int = 1,
    log_level: str = "info",
    log_access: bool = False,
    route_count: int | None = None,
    granian_kwargs: dict[str, Any] | None = None,
) -> None:
    """Serve the Waypoint app at *target* with Granian.

    Parameters
    ----------
    target:
        ``"module:var"`` import path of a :class:`~waypoint.app.Waypoint`.
    dev:
        Turns on reload, debug logs and access logs unless *reload* says
        otherwise.
    route_count:
        Shown in the startup banner when known.
    """
    from granian import Granian

    if dev:
        reload = True if reload is None else reload
        log_level = "debug"
        log_access = True
    reload = bool(reload)

    _print_banner(target, host=host, port=port, workers=workers, reload=reload, dev=dev, route_count=route_count)

    server = Granian(
        target=target,
        address=host,
        port=port,
        interface="asgi",
        workers=workers,
        reload=reload,
        log_level=log_level,
        log_access=log_access,
        **(granian_kwargs or {}),
    )
    server.serve()


def _print_banner(
    target: str,
    *,
    host: str,
    port: int,
    workers: int,
    reload: bool,
    dev: bool,
    route_count: int | None,
) -> None:
    rows = {
        "app": target,
        "listen": f"http://{host}:{port}",
        "workers": str(workers),
        "reload": "on" if reload else "off",
    }
    if route_count is not None:
        rows["routes"] = str(route_count)

    # click strips the styling when stdout is not a terminal
    title = typer.style("waypoint", fg=typer.colors.CYAN, bold=True)
    typer.echo(f"{title} ({'dev' if dev else 'production'})")
    for label, value in rows.items():
        typer.echo(f"  {typer.style(label.ljust(8), fg=typer.colors.GREEN)} {value}")
    typer.echo("")
