"""Command-line interface to the `.RelayServer`.

This module provides the ``portfolio-live`` command. The relay may be run
with its default settings, or configured with a JSON file or string whose
keys are the fields of `.RelayConfig`, for example:

.. code-block:: bash

    portfolio-live --port 9001 -j '{"notification_buffer_size": 5}'
"""

from argparse import ArgumentParser, Namespace
import sys
from typing import Optional

from pydantic import ValidationError
import uvicorn

from . import RelayServer
from .config_model import RelayConfig


def get_default_parser() -> ArgumentParser:
    """Build the argument parser for ``portfolio-live``.

    Configuration comes from ``-c`` (a file) or ``-j`` (a JSON string), and
    ``--host`` and ``--port`` choose where the relay listens.

    :return: the parser, which may be extended before use.
    """
    parser = ArgumentParser(description="Serve live editing notifications.")
    parser.add_argument(
        "-c", "--config", type=str, help="JSON file of relay settings"
    )
    parser.add_argument(
        "-j", "--json", type=str, help="Relay settings as a JSON string"
    )
    parser.add_argument(
        "--host", type=str, default="127.0.0.1", help="Interface to listen on"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=9001,
        help="Port to listen on (0 picks a free port).",
    )
    return parser


def parse_args(argv: Optional[list[str]] = None) -> Namespace:
    r"""Read the ``portfolio-live`` options.

    :param argv: the arguments to parse. If omitted, `sys.argv` is used.

    :return: the options described in `.get_default_parser`\ .
    """
    parser = get_default_parser()
    return parser.parse_args(argv)


def config_from_args(args: Namespace) -> RelayConfig:
    """Build a `.RelayConfig` from the ``-c`` or ``-j`` option.

    With neither option, every setting takes its default.

    :param args: options returned by `.parse_args`.

    :return: the validated relay settings.

    :raise FileNotFoundError: if the ``-c`` file does not exist.
    :raise RuntimeError: if ``-c`` and ``-j`` are both given.
    :raise ValidationError: if the settings are not a valid `.RelayConfig`.
    """
    if args.config:
        if args.json:
            raise RuntimeError("Give relay settings with -c or -j, not both.")
        try:
            with open(args.config) as f:
                return RelayConfig.model_validate_json(f.read())
        except FileNotFoundError as e:
            raise FileNotFoundError(
                f"No relay settings file at {args.config}"
            ) from e
    elif args.json:
        return RelayConfig.model_validate_json(args.json)
    return RelayConfig()


def serve_from_cli(
    argv: Optional[list[str]] = None, dry_run: bool = False
) -> RelayServer | None:
    r"""Start the server from the command line.

    This function will parse command line arguments, load configuration,
    set up a server, and start `uvicorn` to serve it on the specified host
    and port. Invalid configuration is printed, and the process exits with
    status 3.

    :param argv: command line arguments (defaults to arguments supplied
        to the current command).
    :param dry_run: may be set to ``True`` to return the server once it
        has been created, without starting `uvicorn`\ .

    :return: the `.RelayServer` instance created, if ``dry_run`` is ``True``.
    """
    args = parse_args(argv)
    try:
        config = config_from_args(args)
    except ValidationError as e:
        print(f"Error reading portfolio-live configuration:\n{e}")
        sys.exit(3)
    server = RelayServer.from_config(config)
    if dry_run:
        return server
    uvicorn.run(server.app, host=args.host, port=args.port)
    return None  # This is required as we sometimes return the server
