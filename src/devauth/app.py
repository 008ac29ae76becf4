"""Typer application and CLI entry point for devauth.

Every sub-command is a single, short invocation, mirroring how agents use
the library: ``devauth token`` either prints a usable access token to
stdout or prints sign-in instructions to stderr and exits with
:data:`~devauth.exit_codes.EXIT_AUTH_REQUIRED`. Running it again after
signing in picks up the persisted pending flow.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. Unhandled exceptions are written to a crash log under
the data directory.

See Also:
    :mod:`devauth.config`: Configuration resolution behind the global flags.
    :mod:`devauth.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

import typer

from devauth import __version__
from devauth.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED

app = typer.Typer(
    name="devauth",
    help="Device-code sign-in and token management for headless callers.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"devauth {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Send library log records to stderr; DEBUG with ``--verbose``, else WARNING."""
    logger = logging.getLogger("devauth")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    # stderr may have been swapped since the last invocation (CliRunner)
    for existing in [h for h in logger.handlers if getattr(h, "_devauth_cli", False)]:
        logger.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    handler._devauth_cli = True  # type: ignore[attr-defined]
    logger.addHandler(handler)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="Public client (application) ID."
    ),
    tenant: Optional[str] = typer.Option(
        None, "--tenant", help="Tenant: common, organizations, consumers, or a GUID."
    ),
    scope: Optional[list[str]] = typer.Option(
        None, "--scope", "-s", help="Scope to request (repeatable)."
    ),
    storage_dir: Optional[str] = typer.Option(
        None, "--storage-dir", help="Directory for tokens and pending sign-in state."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback: set up output and logging, and stash config flags in ``ctx.obj``."""
    from devauth.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["client_id"] = client_id
    ctx.obj["tenant"] = tenant
    ctx.obj["scopes"] = list(scope) if scope else None
    ctx.obj["storage_dir"] = storage_dir


def _build_manager(ctx: typer.Context) -> Any:
    from devauth.auth.manager import TokenLifecycleManager
    from devauth.config import resolve_config
    from devauth.output import debug

    obj = ctx.obj or {}
    config = resolve_config(
        client_id=obj.get("client_id"),
        tenant=obj.get("tenant"),
        scopes=obj.get("scopes"),
        storage_dir=obj.get("storage_dir"),
    )
    debug(f"Using storage directory {config.storage_dir}")
    return TokenLifecycleManager(config)


def _show_instructions(
    user_code: str,
    verification_uri: str,
    expires_at: datetime,
    verification_uri_complete: Optional[str] = None,
    interval_seconds: Optional[int] = None,
) -> None:
    from devauth.output import OutputFormat, format_response, get_output, info, notice, suggest

    notice(f"To sign in, visit {verification_uri} and enter code {user_code}")
    if verification_uri_complete:
        info(f"Or open: {verification_uri_complete}")
    info(f"The code expires at {expires_at.isoformat()}")
    suggest("Run the same command again once sign-in is complete.")

    if get_output().format == OutputFormat.JSON:
        format_response(
            {
                "status": "auth_required",
                "user_code": user_code,
                "verification_uri": verification_uri,
                "verification_uri_complete": verification_uri_complete,
                "expires_at": expires_at.isoformat(),
                "interval_seconds": interval_seconds,
            }
        )


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn :class:`~devauth.exceptions.DevauthError` into output plus an exit code."""
    from devauth.exceptions import AuthRequired, DevauthError
    from devauth.output import error

    try:
        yield
    except AuthRequired as exc:
        _show_instructions(
            exc.user_code,
            exc.verification_uri,
            exc.expires_at,
            exc.verification_uri_complete,
            exc.interval_seconds,
        )
        raise typer.Exit(exc.exit_code)
    except DevauthError as exc:
        error(str(exc))
        raise typer.Exit(exc.exit_code)


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("token")
def token_command(ctx: typer.Context) -> None:
    """Print a valid access token, refreshing or advancing sign-in as needed."""
    from devauth.output import print_data

    with _handle_errors():
        manager = _build_manager(ctx)
        print_data(manager.get_valid_access_token())


@app.command("login")
def login_command(ctx: typer.Context) -> None:
    """Start a new device-code sign-in, replacing any pending one."""
    with _handle_errors():
        manager = _build_manager(ctx)
        instructions = manager.start_login()
        _show_instructions(
            instructions.user_code,
            instructions.verification_uri,
            instructions.expires_at,
            instructions.verification_uri_complete,
            instructions.interval_seconds,
        )


@app.command("poll")
def poll_command(ctx: typer.Context) -> None:
    """Check the pending sign-in once."""
    from devauth.exit_codes import EXIT_AUTH_REQUIRED
    from devauth.output import format_response, info, success, warning

    with _handle_errors():
        manager = _build_manager(ctx)
        outcome = manager.check_pending_login()

    format_response(
        outcome.model_dump(mode="json", exclude={"access_token", "refresh_token"})
    )

    if outcome.status == "completed":
        success("Sign-in complete. Tokens stored.")
        return
    if outcome.status == "pending":
        info(f"Still waiting for sign-in. Poll again in {outcome.next_poll_in_seconds}s.")
        raise typer.Exit(EXIT_AUTH_REQUIRED)
    warning(f"Sign-in {outcome.status}: {outcome.reason}")
    raise typer.Exit(EXIT_GENERIC_FAILURE)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show stored credential state without contacting the provider."""
    from devauth.output import print_table

    with _handle_errors():
        manager = _build_manager(ctx)
        status = manager.status()

    def _fmt(value: Optional[datetime]) -> str:
        return value.isoformat() if value else "-"

    rows = [
        ["state", status.state.value],
        ["storage_dir", str(status.storage_dir)],
        ["access_token_expires_at", _fmt(status.access_token_expires_at)],
        ["refresh_token", "present" if status.has_refresh_token else "absent"],
    ]
    if status.pending_flow is not None:
        rows.append(["pending_user_code", status.pending_flow.user_code])
        rows.append(["pending_verification_uri", status.pending_flow.verification_uri])
        rows.append(["pending_expires_at", _fmt(status.pending_flow.expires_at)])
    print_table(["field", "value"], rows, title="devauth session")


@app.command("logout")
def logout_command(ctx: typer.Context) -> None:
    """Delete stored tokens and any pending sign-in."""
    from devauth.output import success

    with _handle_errors():
        manager = _build_manager(ctx)
        manager.logout()
    success("Stored credentials cleared.")


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from devauth.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``devauth`` console script.

    :class:`~devauth.exceptions.DevauthError` instances that escape a
    command cause a clean exit with the error's ``exit_code``. All other
    exceptions produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        from devauth.exceptions import DevauthError
        from devauth.output import error

        if isinstance(exc, DevauthError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
