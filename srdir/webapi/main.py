"""Launch the srdir web API with settings from the environment or a .env file."""

from __future__ import annotations

import argparse
from dataclasses import replace
import logging
import os
import sys
from pathlib import Path
from typing import Dict

import uvicorn

from srdir.config import load_env_file, webapi_settings_from_env
from srdir.output.errors import ResultCode

from . import app

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--env", type=Path, help="Archivo .env con variables SRDIR_WEBAPI_*")
    parser.add_argument("--host", help="Dirección de escucha (anula SRDIR_WEBAPI_HOST)")
    parser.add_argument("--port", type=int, help="Puerto de escucha (anula SRDIR_WEBAPI_PORT)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    env: Dict[str, str] = dict(os.environ)
    try:
        if args.env is not None:
            env.update(load_env_file(args.env))
        settings = webapi_settings_from_env(env)
    except (OSError, ValueError) as exc:
        logger.error("Configuración de la Web API inválida: %s", exc)
        return int(ResultCode.ERR_ARG)

    if args.host:
        settings = replace(settings, host=args.host)
    if args.port is not None:
        settings = replace(settings, port=args.port)
    if settings.token is None:
        logger.warning("SRDIR_WEBAPI_TOKEN no definido: las rutas de escritura quedan abiertas")

    app.state.webapi_settings = settings
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level)
    return int(ResultCode.OK)


if __name__ == "__main__":
    sys.exit(main())
