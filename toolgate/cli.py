"""Command line entry point: ``toolgate --port 3000 --sandbox ./sandbox``."""

import argparse

import uvicorn

from toolgate import __version__
from toolgate.configuration.config import Settings
from toolgate.configuration.logging import configure_logging
from toolgate.infrastructure.adapters.primary.web.main import create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolgate",
        description="Tool-calling gateway for OpenAI-compatible language models",
    )
    parser.add_argument("--host", help="Interface to bind (default: API_HOST)")
    parser.add_argument("--port", type=int, help="Port to listen on (default: API_PORT)")
    parser.add_argument("--sandbox", help="Sandbox directory for file tools (default: SANDBOX_DIR)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (default: LOG_LEVEL)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {
        "api_host": args.host,
        "api_port": args.port,
        "sandbox_dir": args.sandbox,
        "log_level": args.log_level,
    }
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    configure_logging(settings)

    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
