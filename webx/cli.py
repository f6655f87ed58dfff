"""CLI entry point for webx.

Issues a single call from the command line, either against a profile from a
YAML config file or against an explicit base URL.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from webx.options import Option
    from webx.request import Request
    from webx.response import Response


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


@dataclass
class CallArgs:
    """Parsed arguments for the call subcommand."""

    path: str
    config: Path | None
    profile: str | None
    base_url: str | None
    method: str
    args: list[tuple[str, str]] = field(default_factory=list)
    set_args: list[tuple[str, str]] = field(default_factory=list)
    headers: list[tuple[str, str]] = field(default_factory=list)
    user: tuple[str, str] | None = None
    data: str | None = None
    data_file: Path | None = None
    content_type: str | None = None
    fields: list[tuple[str, str]] = field(default_factory=list)
    files: list[tuple[str, Path]] = field(default_factory=list)
    base64: bool = False
    timeout: float | None = None
    debug: bool = False
    verbose: bool = False
    save: Path | None = None


def parse_pair(value: str, sep: str = "=") -> tuple[str, str]:
    """Parse NAME<sep>VALUE. Used as an argparse type."""
    name, found, rest = value.partition(sep)
    name = name.strip()
    if not found or not name:
        raise argparse.ArgumentTypeError(f"Expected NAME{sep}VALUE, got '{value}'")
    return name, rest.strip() if sep == ":" else rest


def parse_header(value: str) -> tuple[str, str]:
    return parse_pair(value, ":")


def parse_user(value: str) -> tuple[str, str]:
    user, _, password = value.partition(":")
    if not user:
        raise argparse.ArgumentTypeError(f"Expected USER[:PASSWORD], got '{value}'")
    return user, password


def parse_file(value: str) -> tuple[str, Path]:
    name, path = parse_pair(value)
    return name, Path(path)


def parse_timeout(value: str) -> float:
    try:
        timeout = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid timeout '{value}'. Must be a number.")
    if timeout <= 0:
        raise argparse.ArgumentTypeError(f"Invalid timeout '{value}'. Must be positive.")
    return timeout


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with the call subcommand."""
    parser = argparse.ArgumentParser(
        prog="webx",
        description="Issue HTTP calls against a configured base request.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command")

    call_parser = subparsers.add_parser("call", help="Send one request and print the response")
    call_parser.add_argument("path", help="Path joined onto the base URL")

    target = call_parser.add_argument_group("target")
    target.add_argument("--config", type=Path, help="YAML config file with profiles")
    target.add_argument("--profile", help="Profile name from --config")
    target.add_argument("--base-url", help="Absolute base URL (instead of --config/--profile)")

    req = call_parser.add_argument_group("request")
    req.add_argument("-X", "--method", default="GET", help="HTTP method (default: GET)")
    req.add_argument("--arg", dest="args", type=parse_pair, action="append", default=[],
                     metavar="NAME=VALUE", help="Append a query argument (repeatable)")
    req.add_argument("--set-arg", dest="set_args", type=parse_pair, action="append", default=[],
                     metavar="NAME=VALUE", help="Replace a query argument (repeatable)")
    req.add_argument("-H", "--header", dest="headers", type=parse_header, action="append",
                     default=[], metavar="'NAME: VALUE'", help="Append a header (repeatable)")
    req.add_argument("--user", type=parse_user, metavar="USER[:PASSWORD]", help="Basic auth")
    req.add_argument("--data", help="Request body as a string")
    req.add_argument("--data-file", type=Path, help="Read request body from a file")
    req.add_argument("--content-type", help="Content-Type of --data/--data-file")
    req.add_argument("--field", dest="fields", type=parse_pair, action="append", default=[],
                     metavar="NAME=VALUE", help="Multipart form field (repeatable)")
    req.add_argument("--file", dest="files", type=parse_file, action="append", default=[],
                     metavar="FIELD=PATH", help="Multipart file attachment (repeatable)")
    req.add_argument("--base64", action="store_true",
                     help="Send --file attachments base64-transcoded")
    req.add_argument("--timeout", type=parse_timeout, help="Timeout in seconds")

    out = call_parser.add_argument_group("output")
    out.add_argument("--debug", action="store_true", help="Log a dump of the outgoing request")
    out.add_argument("-v", "--verbose", action="store_true", help="Enable log output on stderr")
    out.add_argument("--save", type=Path, help="Write the response attachment to PATH")

    return parser


def parse_args(args: list[str] | None = None) -> CallArgs:
    """Parse command-line arguments and return the typed args dataclass.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    if namespace.base_url is None and (namespace.config is None or namespace.profile is None):
        parser.error("either --base-url or both --config and --profile are required")
    if namespace.data is not None and namespace.data_file is not None:
        parser.error("--data and --data-file are mutually exclusive")

    return CallArgs(
        path=namespace.path,
        config=namespace.config,
        profile=namespace.profile,
        base_url=namespace.base_url,
        method=namespace.method,
        args=namespace.args,
        set_args=namespace.set_args,
        headers=namespace.headers,
        user=namespace.user,
        data=namespace.data,
        data_file=namespace.data_file,
        content_type=namespace.content_type,
        fields=namespace.fields,
        files=namespace.files,
        base64=namespace.base64,
        timeout=namespace.timeout,
        debug=namespace.debug,
        verbose=namespace.verbose,
        save=namespace.save,
    )


def build_base_request(args: CallArgs) -> Request:
    """Create the base request from --base-url or the selected profile."""
    from webx.config_loader import ConfigError, get_profile, load_runtime_config, request_from_profile
    from webx.request import Request

    if args.base_url is not None:
        return Request(args.base_url)

    if args.config is None or args.profile is None:
        raise ConfigError("either --base-url or both --config and --profile are required")
    config = load_runtime_config(args.config)
    return request_from_profile(get_profile(config, args.profile))


def build_call_options(args: CallArgs) -> list[Option]:
    """Translate parsed arguments into call options."""
    from webx import options as opt
    from webx.models import MIME_UNKNOWN, File

    options: list[Option] = [opt.method(args.method)]
    options += [opt.append_arg(name, value) for name, value in args.args]
    options += [opt.replace_arg(name, value) for name, value in args.set_args]
    options += [opt.append_header(name, value) for name, value in args.headers]

    if args.user is not None:
        options.append(opt.auth(*args.user))

    if args.data is not None:
        options.append(opt.body(args.content_type or MIME_UNKNOWN, args.data))
    elif args.data_file is not None:
        options.append(opt.body(args.content_type or MIME_UNKNOWN, args.data_file.read_bytes()))

    options += [opt.field_str(name, value) for name, value in args.fields]

    attach = opt.field_file_as_base64 if args.base64 else opt.field_file
    for name, path in args.files:
        options.append(attach(name, File(name=path.name, data=path.read_bytes())))

    if args.timeout is not None:
        options.append(opt.timeout(args.timeout))
    if args.debug:
        options.append(opt.debug())
    return options


def write_response(response: Response, save: Path | None) -> None:
    print(f"HTTP {response.status_code} {response.url}", file=sys.stderr)
    if save is None:
        sys.stdout.write(response.text)
        sys.stdout.flush()
        return

    attachment = response.file()
    save.write_bytes(attachment.data)
    print(f"Saved {attachment.name} ({len(attachment.data)} bytes) to {save}", file=sys.stderr)


def run_call(args: CallArgs) -> int:
    """Run the call subcommand."""
    from webx.config_loader import ConfigError
    from webx.errors import BadOptionError, BadURLError, ResponseError, WebxError

    try:
        base = build_base_request(args)
        call_options = build_call_options(args)
    except (ConfigError, BadOptionError, BadURLError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        response = base.make(args.path, *call_options)
    except BadOptionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except ResponseError as e:
        if e.response is not None:
            write_response(e.response, None)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED
    except WebxError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED

    try:
        write_response(response, args.save)
    except (WebxError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed = parse_args(argv)
        if parsed.verbose or parsed.debug:
            logging.basicConfig(
                level=logging.DEBUG if parsed.verbose else logging.INFO,
                format="%(asctime)s %(levelname)s %(name)s: %(message)s",
                stream=sys.stderr,
            )
        return run_call(parsed)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
