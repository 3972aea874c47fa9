from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace

from .config import RelayRuntimeConfig, apply_environment
from .constants import DEFAULT_PORT
from .logging_config import configure_logging
from .service import RelayService
from .util import parse_port


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="chatrelay", description="Run a line-based chat relay")
    # Kept as a string so an unusable value falls back to the default
    # instead of failing argument parsing.
    p.add_argument(
        "port",
        nargs="?",
        default=None,
        help=f"TCP port to listen on (default: {DEFAULT_PORT})",
    )
    return p


def build_config(argv: list[str] | None = None, environ=None) -> RelayRuntimeConfig:
    # Anything beyond the port is ignored, like an unusable port value.
    args, _extra = _build_arg_parser().parse_known_args(sys.argv[1:] if argv is None else argv)
    cfg = apply_environment(RelayRuntimeConfig(), environ)
    return replace(cfg, port=parse_port(args.port))


def main(argv: list[str] | None = None) -> None:
    cfg = build_config(argv)
    configure_logging(cfg)

    svc = RelayService(cfg)
    try:
        svc.run_forever()
    except OSError as e:
        logging.getLogger("chatrelay.relay").error(
            "Relay stopped on %s:%s: %s", cfg.host, cfg.port, e
        )
        svc.stop()
        raise SystemExit(1)


if __name__ == "__main__":
    main()
