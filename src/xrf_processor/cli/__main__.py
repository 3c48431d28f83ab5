from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from xrf_processor.clients.openai_client import (
    OpenAIClient,
    OpenAIColumnMapper,
    OpenAIHazardAssessor,
    OpenAINameGrouper,
    resolve_api_key,
)
from xrf_processor.config.loader import DEFAULT_CONFIG_PATH, AppConfig, ConfigError, default_config, load_config
from xrf_processor.db.mapping_cache import CacheError, InMemoryMappingCache, PostgresMappingCache
from xrf_processor.excel.header_locator import locate_header
from xrf_processor.excel.reader import GridReadError, read_grid
from xrf_processor.logging.error_log import ErrorLogBuffer
from xrf_processor.logging.init import log_summary, set_debug, setup_logging
from xrf_processor.models.row_data import cell_text
from xrf_processor.services.column_mapper import detect_columns, missing_required
from xrf_processor.services.hazards import load_hazard_reference
from xrf_processor.services.normalizer import component_normalizer, substrate_normalizer
from xrf_processor.services.parser import XrfParser
from xrf_processor.services.pipeline import PipelineError, run_job
from xrf_processor.services.summary import combined_summary_file_name, render_summary_line, to_json

"""CLI entrypoint.

Runs one job: parse the units and/or common-area spreadsheet, normalize names
(cache first, AI second), classify, optionally assess hazards, and write the
combined summary JSON to the output directory.

Exit codes:
    0  every given file parsed
    1  fatal: bad config, no file could be parsed, output not writable
    2  partial: at least one file failed, the other was summarized
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2


@contextmanager
def _db_connection(cfg: AppConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """psycopg2 connection, closed on exit.

    Resolution order: DATABASE_URL / PGDSN, then the YAML ``database.dsn``, then
    individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE with the YAML
    ``database`` section as fallback for each part.
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if not dsn:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    conn = psycopg2.connect(dsn)
    conn.autocommit = False
    try:
        yield conn
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="xrf-processor",
        description="XRF lead paint spreadsheet -> classified job summary",
    )
    p.add_argument("--job", required=True, help="Job number written into the summary")
    p.add_argument("--units", type=Path, help="Units spreadsheet (.xlsx/.xls/.csv)")
    p.add_argument("--common-area", type=Path, help="Common-area spreadsheet (.xlsx/.xls/.csv)")
    p.add_argument("--config", type=Path, help=f"YAML config (default {DEFAULT_CONFIG_PATH})")
    p.add_argument("--output-dir", type=Path, help="Override output_directory from config")
    p.add_argument("--no-ai", action="store_true", help="Disable AI column mapping and name grouping")
    p.add_argument("--no-cache", action="store_true", help="Use an in-memory mapping cache")
    p.add_argument("--hazards", action="store_true", help="Generate hazard assessments for positive groups")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--inspect-data", action="store_true", help="Print detected headers, mapping and first rows then exit"
    )
    return p.parse_args(argv)


def _resolve_config(args: argparse.Namespace, logger) -> AppConfig:
    if args.config is not None:
        return load_config(args.config)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    logger.info(f"no config at {DEFAULT_CONFIG_PATH}, using defaults")
    return default_config()


def _inspect_data(cfg: AppConfig, paths: list[Path]) -> int:
    status = EXIT_SUCCESS_ALL
    for path in paths:
        print(f"FILE: {path.name}")
        try:
            sheet = read_grid(path)
        except GridReadError as e:
            print(f"  read_error: {e}")
            status = EXIT_FATAL
            continue
        if not sheet.rows:
            print("  empty")
            continue
        detection = locate_header(sheet.rows, cfg.column_aliases, cfg.processing.header_scan_rows)
        mapping = detect_columns(detection.headers, cfg.column_aliases)
        print(f"  SHEET: {sheet.sheet_name} header_row={detection.row_index} matches={detection.match_count}")
        print(f"  headers={detection.headers}")
        print(f"  mapping={mapping}")
        missing = missing_required(mapping)
        if missing:
            print(f"  missing_required={missing}")
        for row in sheet.rows[detection.row_index + 1:detection.row_index + 4]:
            print("    sample_row=", [cell_text(c) for c in row])
    return status


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # only read sys.argv when called without arguments; tests pass []
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = _resolve_config(args, logger)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    paths = [p for p in (args.common_area, args.units) if p is not None]
    if not paths:
        logger.error("nothing to do: pass --units and/or --common-area")
        return EXIT_FATAL
    for p in paths:
        if not p.exists():
            logger.error(f"file not found: {p}")
            return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(cfg, paths)

    try:
        hazard_reference = load_hazard_reference(cfg.hazard_reference) if args.hazards else None
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    client = None
    if cfg.ai.enabled and not args.no_ai:
        client = OpenAIClient(cfg.ai, resolve_api_key(cfg.ai))
        if not client.is_configured():
            logger.warning(f"{cfg.ai.provider} AI service is not configured; continuing without AI")
            client = None
    if args.hazards and client is None:
        logger.warning("hazard assessment needs the AI service; skipped")

    use_memory = args.no_cache or cfg.cache.backend == "memory"
    if use_memory:
        return _run(args, cfg, client, hazard_reference, None)
    try:
        with _db_connection(cfg) as conn:
            return _run(args, cfg, client, hazard_reference, conn)
    except psycopg2.Error as e:
        logger.warning(f"DB connection failed -> using in-memory cache: {e}")
        return _run(args, cfg, client, hazard_reference, None)


def _run(args, cfg: AppConfig, client: OpenAIClient | None, hazard_reference, conn) -> int:
    logger = setup_logging()

    if conn is None:
        component_cache: Any = InMemoryMappingCache()
        substrate_cache: Any = InMemoryMappingCache()
    else:
        component_cache = PostgresMappingCache(conn, cfg.cache.component_table)
        substrate_cache = PostgresMappingCache(conn, cfg.cache.substrate_table)
        try:
            component_cache.ensure_table()
            substrate_cache.ensure_table()
        except CacheError as e:
            logger.error(f"cache: {e}")
            return EXIT_FATAL

    parser = XrfParser(
        cfg.column_aliases,
        ai_mapper=OpenAIColumnMapper(client) if client else None,
        processing=cfg.processing,
        use_ai_fallback=cfg.ai.use_ai_column_fallback,
        always_use_ai=cfg.ai.always_use_ai_columns,
    )
    try:
        result = run_job(
            args.job,
            parser=parser,
            component_normalizer=component_normalizer(
                component_cache, OpenAINameGrouper(client, "component") if client else None, cfg.processing
            ),
            substrate_normalizer=substrate_normalizer(
                substrate_cache, OpenAINameGrouper(client, "substrate") if client else None, cfg.processing
            ),
            units_path=args.units,
            common_area_path=args.common_area,
            hazard_assessor=(
                OpenAIHazardAssessor(client, hazard_reference) if client and hazard_reference else None
            ),
            hazard_reference=hazard_reference,
            error_log=ErrorLogBuffer(),
        )
    except PipelineError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL
    except CacheError as e:
        logger.error(f"cache: {e}")
        return EXIT_FATAL

    out_dir = args.output_dir or cfg.output_directory
    out_path = out_dir / combined_summary_file_name(args.job)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        out_path.write_text(to_json(result.summary), encoding="utf-8")
    except OSError as e:
        logger.error(f"failed to write summary: {e}")
        return EXIT_FATAL
    logger.info(f"summary written: {out_path}")
    if result.error_log_path is not None:
        logger.info(f"error log: {result.error_log_path}")

    summary_line = render_summary_line(
        result.summary,
        files_ok=result.files_ok,
        files_failed=result.files_failed,
        elapsed_seconds=result.elapsed_seconds,
    )
    # log_summary adds the SUMMARY label itself
    log_summary(summary_line[len("SUMMARY "):])

    if result.files_failed > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
