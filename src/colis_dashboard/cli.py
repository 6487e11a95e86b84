# src/colis_dashboard/cli.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from .config.env import EnvError, get_app_env
from .config.logging_config import ROOT_LOGGER_NAME, get_logger
from .errors import ColisError, ProviderError, TransportError, ValidationError
from .models import EnvCfg, ParcelRecord

EXIT_OK = 0
EXIT_PROVIDER = 1
EXIT_USAGE = 2

# Columns printed for `list` when no --output is given
_PREVIEW_COLUMNS = ["Code barre", "Référence", "Etat", "Client", "Ville", "Téléphone 1", "Prix"]


def _listing_options() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument("--limit", type=int, default=None,
                   help="Stop fetching pages once this many records are held.")
    p.add_argument("--max-pages", type=int, default=None,
                   help="Read at most this many listing pages.")
    p.add_argument("--sequential", action="store_true",
                   help="Fetch pages one by one instead of in parallel.")
    p.add_argument("--replay", type=Path, default=None,
                   help="JSON file of recorded listing pages (no network).")
    p.add_argument("--record", type=Path, default=None,
                   help="Save every listing page fetched to this JSON file.")
    return p


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="colis-dashboard",
        description="List, search and manage Colissimo parcels from the command line.",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: LOG_LEVEL or INFO",
    )
    p.add_argument("--log-file", type=Path, default=None,
                   help="Also write the log to this file (rotated).")
    p.add_argument(
        "--no-console",
        action="store_true",
        help="Disable console logging (file logging remains).",
    )
    p.add_argument("--env-file", type=Path, default=Path(".env"),
                   help="dotenv file with COLISSIMO_* settings. Default: ./.env")

    sub = p.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True
    listing = _listing_options()

    ls = sub.add_parser("list", parents=[listing], help="Aggregate, filter and show parcels.")
    ls.add_argument("--status", default=None, help='Exact status to keep ("all" keeps every status).')
    ls.add_argument("--query", "-q", default="", help="Text to search for.")
    ls.add_argument("--field", default="all",
                    help="Search field: all, reference, client, phone, trackingNumber. Default: all")
    ls.add_argument("--start", default=None, help="Earliest creation date (YYYY-MM-DD).")
    ls.add_argument("--end", default=None, help="Latest creation date (YYYY-MM-DD).")
    ls.add_argument("--enrich", action="store_true",
                    help="Add courier/anomaly/fee details from the REST listing.")
    ls.add_argument("--output", "-o", type=Path, default=None,
                    help="Write the result to .xlsx or .json instead of printing it.")

    sub.add_parser("stats", parents=[listing], help="Count parcels per status.")

    show = sub.add_parser("show", help="Show one parcel.")
    show.add_argument("code", help="Tracking code (code barre).")

    imp = sub.add_parser("import", help="Create parcels from an import workbook.")
    imp.add_argument("workbook", type=Path, help="Path to input .xlsx file.")
    imp.add_argument("--dry-run", action="store_true",
                     help="Validate the workbook only; nothing is sent.")

    tpl = sub.add_parser("template", help="Write an example import workbook.")
    tpl.add_argument("output", type=Path, help="Target .xlsx path.")

    sub.add_parser("validate-pickup", help="Request pickup of every pending parcel.")

    adv = sub.add_parser("advance-pending", parents=[listing],
                         help='Move every "En Attente" parcel to "A Enlever".')
    adv.add_argument("--dry-run", action="store_true", help="Only list what would change.")

    st = sub.add_parser("set-status", help="Change the status of one parcel.")
    st.add_argument("code")
    st.add_argument("status")

    rm = sub.add_parser("delete", help="Delete one parcel.")
    rm.add_argument("code")

    sub.add_parser("provinces", help="List provinces (gouvernorats) and their cities.")

    lbl = sub.add_parser("label", help="Download the label PDF of one parcel.")
    lbl.add_argument("code")
    lbl.add_argument("--output", "-o", type=Path, required=True, help="Target .pdf path.")
    return p


# --- wiring ------------------------------------------------------------------

def _env(args: argparse.Namespace) -> EnvCfg:
    return get_app_env(args.env_file, strict=True)


def _soap_client(env_cfg: EnvCfg):
    from .api.soap import ColissimoSoapClient
    return ColissimoSoapClient.from_env(env_cfg)


def _rest_client(env_cfg: EnvCfg):
    from .api.rest import ColissimoRestClient
    return ColissimoRestClient.from_env(env_cfg)


def _aggregate(args: argparse.Namespace, logger: logging.Logger) -> tuple[list[ParcelRecord], Optional[EnvCfg]]:
    from .pipelines.aggregator import DEFAULT_MAX_WORKERS, fetch_all_pages

    env_cfg: Optional[EnvCfg] = None
    if args.replay:
        from .api.replay import ReplayProvider
        fetch_page = ReplayProvider(args.replay).fetch_page
        logger.info("Replay mode enabled: %s", args.replay)
    else:
        env_cfg = _env(args)
        fetch_page = _soap_client(env_cfg).list_parcels

    if args.record:
        from .api.recorder import EnvelopeWriter
        writer = EnvelopeWriter(args.record)
        writer.reset()
        fetch_page = writer.wrap(fetch_page)
        logger.info("Recording listing pages to %s", args.record)

    result = fetch_all_pages(
        fetch_page,
        max_pages=args.max_pages,
        limit=args.limit,
        concurrent=False if args.sequential else None,
        max_workers=env_cfg.COLISSIMO_PAGE_WORKERS if env_cfg else DEFAULT_MAX_WORKERS,
    )
    return result.records, env_cfg


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


# --- commands ----------------------------------------------------------------

def _cmd_list(args: argparse.Namespace, logger: logging.Logger) -> int:
    from .rules.search import search

    records, env_cfg = _aggregate(args, logger)

    if args.enrich:
        from .pipelines.enricher import enrich
        env_cfg = env_cfg or _env(args)
        records = enrich(records, _rest_client(env_cfg).list_by_codes)

    found = search(records, args.query, args.field,
                   {"start": args.start, "end": args.end}, status=args.status)
    logger.info("%d of %d record(s) match", len(found), len(records))

    if args.output:
        from .io.workbook import export_records
        export_records(found, args.output)
        print(f"{len(found)} parcel(s) written to {args.output}")
        return EXIT_OK

    if found:
        from .io.workbook import records_frame
        print(records_frame(found)[_PREVIEW_COLUMNS].fillna("").to_string(index=False))
    print(f"{len(found)} parcel(s)")
    return EXIT_OK


def _cmd_stats(args: argparse.Namespace, logger: logging.Logger) -> int:
    from .rules.stats import status_frame

    records, _ = _aggregate(args, logger)
    frame = status_frame(records)
    if not frame.empty:
        print(frame.to_string(index=False))
    print(f"Total: {len(records)}")
    return EXIT_OK


def _cmd_show(args: argparse.Namespace, logger: logging.Logger) -> int:
    record = _soap_client(_env(args)).get_parcel(args.code)
    _print_json(record.to_dict())
    return EXIT_OK


def _cmd_import(args: argparse.Namespace, logger: logging.Logger, report_path: Path) -> int:
    from .io.workbook import read_import_workbook

    records = read_import_workbook(args.workbook)
    if args.dry_run:
        report = {"dryRun": True, "nbTotal": len(records), "nbCrees": 0,
                  "lsCrees": [], "lsErreurs": []}
        code = EXIT_OK
    else:
        from .pipelines.importer import import_parcels
        result = import_parcels(records, _rest_client(_env(args)))
        report = result.to_dict()
        code = EXIT_PROVIDER if result.kind == "error" else EXIT_OK

    report_path.write_text(json.dumps(report, ensure_ascii=False, indent=2, default=str),
                           encoding="utf-8")
    logger.info("Import report: %s", report_path)
    print(f"{report['nbCrees']}/{report['nbTotal']} parcel(s) created; report: {report_path}")
    return code


def _cmd_template(args: argparse.Namespace, logger: logging.Logger) -> int:
    from .io.workbook import write_import_template
    path = write_import_template(args.output)
    print(f"Template written to {path}")
    return EXIT_OK


def _cmd_validate_pickup(args: argparse.Namespace, logger: logging.Logger) -> int:
    result = _rest_client(_env(args)).request_pickup()
    print(f"Pickup requested. Manifest: {result.manifest_url or '-'}")
    return EXIT_OK


def _cmd_advance_pending(args: argparse.Namespace, logger: logging.Logger) -> int:
    from .models import STATUS_PENDING
    from .pipelines.bulk import advance_pending

    records, env_cfg = _aggregate(args, logger)
    if args.dry_run:
        pending = [r for r in records if r.status == STATUS_PENDING]
        for rec in pending:
            print(rec.tracking_code or rec.reference or "")
        print(f"{len(pending)} parcel(s) would be moved")
        return EXIT_OK

    result = advance_pending(records, _soap_client(env_cfg or _env(args)))
    print(f"{result.succeeded} moved, {result.failed} failed")
    if result.failed_ids:
        print("Failed: " + ", ".join(result.failed_ids))
    return EXIT_OK if result.failed == 0 else EXIT_PROVIDER


def _cmd_set_status(args: argparse.Namespace, logger: logging.Logger) -> int:
    _soap_client(_env(args)).change_status(args.code, args.status)
    print(f"{args.code}: {args.status}")
    return EXIT_OK


def _cmd_delete(args: argparse.Namespace, logger: logging.Logger) -> int:
    _soap_client(_env(args)).delete_parcel(args.code)
    print(f"{args.code} deleted")
    return EXIT_OK


def _cmd_provinces(args: argparse.Namespace, logger: logging.Logger) -> int:
    _print_json(_soap_client(_env(args)).list_provinces())
    return EXIT_OK


def _cmd_label(args: argparse.Namespace, logger: logging.Logger) -> int:
    pdf = _soap_client(_env(args)).get_label_pdf(args.code)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_bytes(pdf)
    print(f"Label written to {args.output} ({len(pdf)} bytes)")
    return EXIT_OK


_COMMANDS = {
    "list": _cmd_list,
    "stats": _cmd_stats,
    "show": _cmd_show,
    "template": _cmd_template,
    "validate-pickup": _cmd_validate_pickup,
    "advance-pending": _cmd_advance_pending,
    "set-status": _cmd_set_status,
    "delete": _cmd_delete,
    "provinces": _cmd_provinces,
    "label": _cmd_label,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # Imports log next to the workbook unless told otherwise
    log_file = args.log_file
    report_path = None
    if args.command == "import":
        from .io.paths import derive_output_paths
        try:
            report_path, default_log = derive_output_paths(args.workbook)
        except FileNotFoundError:
            print(f"error: input file not found: {args.workbook}", file=sys.stderr)
            return EXIT_USAGE
        log_file = log_file or default_log

    logger = get_logger(
        ROOT_LOGGER_NAME,
        level=args.log_level,
        console=not args.no_console,
        log_file=log_file,
    )
    logger.debug("Logger initialized (command=%s).", args.command)

    try:
        if args.command == "import":
            return _cmd_import(args, logger, report_path)
        return _COMMANDS[args.command](args, logger)
    except EnvError as e:
        logger.error("Environment error: %s", e)
        return EXIT_USAGE
    except (ValidationError, ValueError, FileNotFoundError) as e:
        # ValueError: unreadable replay file
        logger.error("Invalid input: %s", e)
        return EXIT_USAGE
    except ProviderError as e:
        logger.error("Provider error: %s", e)
        return EXIT_PROVIDER
    except TransportError as e:
        logger.error("Transport error: %s", e)
        return EXIT_PROVIDER
    except ColisError as e:
        logger.exception("Failed: %s", e)
        return EXIT_PROVIDER


if __name__ == "__main__":
    raise SystemExit(main())
