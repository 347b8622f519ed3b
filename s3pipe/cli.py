"""s3pipe CLI - stream stdin into S3 with bounded memory.

The CLI is a thin wrapper around the Python API (see upload.py).
All upload logic lives in the library; the CLI resolves settings, handles
user interaction and maps errors to exit codes (0 success, 1 failure).

Example:
    pg_dump mydb | s3pipe upload s3://backups/mydb.sql --size "$(...)" -c 4
"""

from __future__ import annotations

from typing import Any, BinaryIO

import click

from s3pipe.config import (
    KNOWN_SETTINGS,
    get_setting,
    list_settings,
    set_setting,
    unset_setting,
)
from s3pipe.constants import MIB
from s3pipe.errors import ConfigError, S3PipeError
from s3pipe.json_output import ErrorDetail, error_envelope, success_envelope
from s3pipe.output import configure_logging, detail, error, info, success, warn
from s3pipe.s3 import S3MultipartClient, check_credentials, create_s3_client, create_session
from s3pipe.storage import MultipartClient
from s3pipe.upload import plan_upload, stream_upload


def should_output_json(ctx: click.Context) -> bool:
    """True when the global --format option asked for JSON."""
    obj = ctx.find_root().obj or {}
    return bool(obj.get("format") == "json")


def output_json_envelope(envelope: Any) -> None:
    """Print a JSON envelope to stdout."""
    click.echo(envelope.to_json())


def _report_error(command: str, err: Exception, use_json: bool) -> None:
    if use_json:
        output_json_envelope(error_envelope(command, [ErrorDetail.from_exception(err)]))
        return
    message = err.message if isinstance(err, S3PipeError) else str(err)
    error(message)
    hint = getattr(err, "hint", None)
    if hint:
        for line in str(hint).splitlines():
            detail(line)


def _build_client(
    profile: str | None,
    region: str | None,
    endpoint_url: str | None,
    dualstack: bool,
) -> MultipartClient:
    """Create the boto3-backed client, failing early without credentials."""
    session = create_session(profile, region)
    ok, hint = check_credentials(session)
    if not ok:
        raise ConfigError("S3 credentials not found", hint=hint)
    return S3MultipartClient(
        create_s3_client(
            session=session, region=region, endpoint_url=endpoint_url, dualstack=dualstack
        )
    )


def _sizing_settings(
    part_size_mb: int | None,
    auto_part_size: bool,
    memory_budget_mb: int | None,
    concurrency: int | None,
) -> dict[str, Any]:
    """Resolve sizing options against env vars and the config file.

    An explicit --part-size always wins. Without one, --auto-part-size or
    --memory-budget select memory-derived sizing; otherwise the configured
    (or default) part size applies.
    """
    memory_mode = auto_part_size or memory_budget_mb is not None
    if part_size_mb is None and not memory_mode:
        part_size_mb = get_setting("part_size_mb")
    return {
        "part_size_mb": part_size_mb,
        "memory_budget_mb": memory_budget_mb,
        "auto_part_size": auto_part_size,
        "concurrency": get_setting("concurrency", cli_value=concurrency),
    }


def sizing_options(func: Any) -> Any:
    """Options shared by `upload` and `plan`."""
    options = [
        click.argument("target"),
        click.option(
            "--size",
            "-s",
            type=int,
            required=True,
            help="Exact input size in bytes (required, must be positive).",
        ),
        click.option(
            "--part-size",
            "part_size_mb",
            type=int,
            default=None,
            help="Part size in MB (minimum 5). Default: 64, or the configured value.",
        ),
        click.option(
            "--auto-part-size",
            is_flag=True,
            default=False,
            help="Derive the part size from available system memory.",
        ),
        click.option(
            "--memory-budget",
            "memory_budget_mb",
            type=int,
            default=None,
            help="Derive the part size from this memory budget in MB.",
        ),
        click.option(
            "--concurrency",
            "-c",
            type=int,
            default=None,
            help="Parallel part uploads (minimum 1). Default: 1, sequential.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(package_name="s3pipe")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "text"]),
    default="text",
    help="Output format (json for machine parsing, text for humans).",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Show per-part progress.")
@click.pass_context
def cli(ctx: click.Context, output_format: str, verbose: bool) -> None:
    """s3pipe - Stream a pipe into an S3 object with bounded memory."""
    ctx.ensure_object(dict)
    ctx.obj["format"] = output_format
    ctx.obj["verbose"] = verbose
    configure_logging(verbose, quiet=output_format == "json")


@cli.command()
@sizing_options
@click.option("--profile", default=None, help="AWS profile name.")
@click.option("--region", default=None, help="AWS region.")
@click.option("--endpoint-url", default=None, help="Custom S3-compatible endpoint URL.")
@click.option(
    "--dualstack/--no-dualstack",
    default=None,
    help="Use IPv4/IPv6 dual-stack S3 endpoints.",
)
@click.option(
    "--input",
    "-i",
    "input_stream",
    type=click.File("rb"),
    default="-",
    help="Read from this file instead of stdin (read once, front to back).",
)
@click.pass_context
def upload(
    ctx: click.Context,
    target: str,
    size: int,
    part_size_mb: int | None,
    auto_part_size: bool,
    memory_budget_mb: int | None,
    concurrency: int | None,
    profile: str | None,
    region: str | None,
    endpoint_url: str | None,
    dualstack: bool | None,
    input_stream: BinaryIO,
) -> None:
    """Upload exactly SIZE bytes from stdin to TARGET (s3://bucket/key).

    The stream is split into parts and sent with S3 multipart upload. Any
    failure aborts the multipart upload, so no partial object is left behind.
    """
    use_json = should_output_json(ctx)

    try:
        sizing = _sizing_settings(part_size_mb, auto_part_size, memory_budget_mb, concurrency)
        # Validate everything local before touching credentials or the network
        plan_upload(target, size=size, **sizing)
        client = _build_client(
            get_setting("profile", cli_value=profile),
            get_setting("region", cli_value=region),
            get_setting("endpoint_url", cli_value=endpoint_url),
            get_setting("dualstack", cli_value=dualstack),
        )
        result = stream_upload(
            input_stream,
            target,
            size=size,
            client=client,
            quiet=use_json,
            **sizing,
        )
    except S3PipeError as err:
        _report_error("upload", err, use_json)
        raise SystemExit(1) from err

    if use_json:
        output_json_envelope(success_envelope("upload", result.to_dict()))
    else:
        info(f"Location: {result.location}")


@cli.command()
@sizing_options
@click.pass_context
def plan(
    ctx: click.Context,
    target: str,
    size: int,
    part_size_mb: int | None,
    auto_part_size: bool,
    memory_budget_mb: int | None,
    concurrency: int | None,
) -> None:
    """Show how an upload of SIZE bytes would be split, without uploading."""
    use_json = should_output_json(ctx)

    try:
        sizing = _sizing_settings(part_size_mb, auto_part_size, memory_budget_mb, concurrency)
        result = plan_upload(target, size=size, **sizing)
    except S3PipeError as err:
        _report_error("plan", err, use_json)
        raise SystemExit(1) from err

    if use_json:
        output_json_envelope(success_envelope("plan", result.to_dict()))
        return

    success(f"s3://{result.bucket}/{result.key}")
    detail(f"Input size:  {result.input_size} bytes")
    detail(f"Part size:   {result.part_size} bytes ({result.part_size / MIB:.0f} MB)")
    detail(f"Parts:       {result.part_count} (last part {result.last_part_size} bytes)")
    detail(f"Concurrency: {result.concurrency}")
    detail(f"Peak memory: {result.peak_buffer_bytes / MIB:.0f} MB in {result.buffers} buffer(s)")


@cli.group()
def config() -> None:
    """Manage s3pipe defaults (config file and S3PIPE_* variables)."""


@config.command("get")
@click.argument("key")
@click.pass_context
def config_get(ctx: click.Context, key: str) -> None:
    """Show the resolved value of KEY."""
    use_json = should_output_json(ctx)
    try:
        value = get_setting(key)
    except S3PipeError as err:
        _report_error("config get", err, use_json)
        raise SystemExit(1) from err

    if use_json:
        output_json_envelope(success_envelope("config get", {"key": key, "value": value}))
    elif value is None:
        info(f"{key} is not set")
    else:
        click.echo(value)


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Store VALUE for KEY in the config file."""
    use_json = should_output_json(ctx)
    try:
        stored = set_setting(key, value)
    except S3PipeError as err:
        _report_error("config set", err, use_json)
        raise SystemExit(1) from err

    if use_json:
        output_json_envelope(success_envelope("config set", {"key": key, "value": stored}))
        return
    if key not in KNOWN_SETTINGS:
        warn(f"'{key}' is not a known setting; stored anyway")
    success(f"Set {key} = {stored}")


@config.command("unset")
@click.argument("key")
@click.pass_context
def config_unset(ctx: click.Context, key: str) -> None:
    """Remove KEY from the config file."""
    use_json = should_output_json(ctx)
    try:
        removed = unset_setting(key)
    except S3PipeError as err:
        _report_error("config unset", err, use_json)
        raise SystemExit(1) from err

    if use_json:
        output_json_envelope(success_envelope("config unset", {"key": key, "removed": removed}))
    elif removed:
        success(f"Removed {key}")
    else:
        info(f"{key} was not set")


@config.command("list")
@click.pass_context
def config_list(ctx: click.Context) -> None:
    """List all settings with their values and sources."""
    use_json = should_output_json(ctx)
    try:
        settings = list_settings()
    except S3PipeError as err:
        _report_error("config list", err, use_json)
        raise SystemExit(1) from err

    if use_json:
        output_json_envelope(success_envelope("config list", {"settings": settings}))
        return
    for key, entry in settings.items():
        detail(f"{key} = {entry['value']} ({entry['source']})")
