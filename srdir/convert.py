"""Convert recorded logic/analog captures into an srdir session archive."""

from __future__ import annotations

import argparse
from datetime import datetime, timezone
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List

from srdir.config import (
    archive_settings_from_env,
    load_archive_settings,
    load_device_config,
    load_env_file,
)
from srdir.config.store import CONFIG_DIR
from srdir.output import CaptureRunner, CaptureSources, SrdirError, read_archive
from srdir.output.errors import ResultCode

logger = logging.getLogger(__name__)


def default_output_name() -> str:
    return datetime.now(timezone.utc).strftime("capture_%Y%m%dT%H%M%SZ")


def parse_analog_sources(values: List[str]) -> Dict[int, Path]:
    """Parse repeated ``INDEX=FILE`` options."""

    sources: Dict[int, Path] = {}
    for item in values:
        index_text, sep, path_text = item.partition("=")
        if not sep or not path_text:
            raise ValueError(f"Fuente analógica inválida {item!r}; se espera INDICE=ARCHIVO")
        try:
            index = int(index_text)
        except ValueError as exc:
            raise ValueError(f"Índice de canal inválido en {item!r}") from exc
        if index in sources:
            raise ValueError(f"Canal analógico repetido: {index}")
        sources[index] = Path(path_text)
    return sources


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--device",
        type=Path,
        default=CONFIG_DIR / "device.yaml",
        help="Ruta a device.yaml con la lista de canales",
    )
    parser.add_argument(
        "--archive",
        type=Path,
        default=CONFIG_DIR / "archive.yaml",
        help="Ruta a archive.yaml con los ajustes de salida",
    )
    parser.add_argument("--env", type=Path, help="Archivo .env opcional con variables SRDIR_*")
    parser.add_argument("--logic", type=Path, help="Archivo binario con muestras lógicas empaquetadas")
    parser.add_argument(
        "--analog",
        action="append",
        default=[],
        metavar="INDEX=FILE",
        help="Muestras float32 (o .npy) para el canal analógico INDEX; repetible",
    )
    parser.add_argument("--output", help="Nombre del directorio dentro de output_dir")
    parser.add_argument("--zip", action="store_true", help="Empaquetar el resultado como .sr")
    parser.add_argument("--verify", action="store_true", help="Releer el archivo generado")
    parser.add_argument("-v", "--verbose", action="store_true", help="Activar logs de depuración")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    try:
        device = load_device_config(args.device)
        archive = load_archive_settings(args.archive) if args.archive.exists() else None
        env: Dict[str, str] = dict(os.environ)
        if args.env is not None:
            env.update(load_env_file(args.env))
        archive = archive_settings_from_env(env, archive)
        if args.zip:
            archive.zip_on_finish = True
        sources = CaptureSources(logic=args.logic, analog=parse_analog_sources(args.analog))
    except (OSError, ValueError) as exc:
        logger.error("Configuración inválida: %s", exc)
        return int(ResultCode.ERR_ARG)

    runner = CaptureRunner(device=device, archive=archive)
    try:
        result = runner.run(sources, args.output or default_output_name())
    except KeyboardInterrupt:
        logger.info("Conversión interrumpida por el usuario.")
        return int(ResultCode.ERR_IO)
    except SrdirError as exc:
        logger.error("La conversión falló: %s", exc)
        return int(exc.code)
    except OSError as exc:
        logger.error("No se pudieron leer las fuentes de captura: %s", exc)
        return int(ResultCode.ERR_IO)

    if args.verify and result.directory.is_dir():
        contents = read_archive(result.directory)
        logger.info(
            "Verificación: %d bytes lógicos, %d canales analógicos, %d chunks",
            len(contents.logic),
            len(contents.analog),
            contents.chunk_count,
        )
    if result.srzip is not None:
        logger.info("Archivo .sr generado: %s", result.srzip)
    return int(ResultCode.OK)


if __name__ == "__main__":
    sys.exit(main())
