from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, Iterable, List, Optional, TextIO

from dotenv import load_dotenv

from .api import SyndicationAPI
from .checkpoints import checkpoint_path, load_checkpoint, save_checkpoint
from .client import Client
from .config import Settings, load_settings
from .logging_utils import configure_logging, get_logger, log_json
from .models import RESOURCES, RunStats, resource_spec

logger = get_logger(__name__)


def _write_jsonl(out: TextIO, rows: Iterable[Dict[str, Any]]) -> int:
    n = 0
    for r in rows:
        out.write(json.dumps(r, ensure_ascii=False, default=str) + "\n")
        n += 1
    out.flush()
    return n


def run_replication(
    api: SyndicationAPI,
    resource: str,
    checkpoint_file: str,
    batch_size: int,
    fields: Optional[List[str]] = None,
    filter: Optional[str] = None,
    output: Optional[str] = None,
    sleep_seconds: Optional[float] = None,
) -> RunStats:
    """Replicate one resource, saving the checkpoint only after each page's records are written."""
    stats = RunStats()
    cp = load_checkpoint(checkpoint_file)
    log_json(logger, logging.INFO, "checkpoint_loaded", resource=resource, path=checkpoint_file, **cp.to_dict())

    out = open(output, "a", encoding="utf-8") if output else sys.stdout
    try:
        for batch in api.iter_batches(resource, batch_size, fields, filter, cp, sleep_seconds):
            stats.fetched += _write_jsonl(out, batch.records)
            stats.batches += 1
            save_checkpoint(checkpoint_file, batch.checkpoint)
            log_json(logger, logging.INFO, "checkpoint_saved", resource=resource, count=len(batch), **batch.checkpoint.to_dict())
    except Exception as e:
        stats.errors += 1
        log_json(logger, logging.ERROR, "run_failed", resource=resource, error=str(e), stats=stats.__dict__)
        raise
    finally:
        if output:
            out.close()

    log_json(logger, logging.INFO, "run_complete", resource=resource, stats=stats.__dict__)
    return stats


def cmd_status(settings: Settings, resource: Optional[str]) -> List[tuple]:
    names = [resource_spec(resource).name] if resource else sorted(RESOURCES)
    rows = []
    for name in names:
        path = checkpoint_path(settings.checkpoint_dir, name)
        cp = load_checkpoint(path)
        rows.append((name, cp.last_timestamp, cp.last_key, path.exists()))
    return rows


def schedule_loop(settings: Settings) -> None:
    from apscheduler.schedulers.blocking import BlockingScheduler
    from apscheduler.triggers.interval import IntervalTrigger

    api = SyndicationAPI(Client(settings))
    sched = BlockingScheduler(timezone="UTC")

    def job(name: str) -> None:
        try:
            run_replication(
                api,
                name,
                str(checkpoint_path(settings.checkpoint_dir, name)),
                batch_size=settings.batch_size,
                output=str(checkpoint_path(settings.checkpoint_dir, name).with_suffix(".jsonl")),
            )
        except Exception as e:
            # Next tick resumes from the last saved checkpoint.
            log_json(logger, logging.ERROR, "scheduled_job_failed", resource=name, error=str(e))

    for name in settings.schedule_resources:
        sched.add_job(job, IntervalTrigger(minutes=settings.schedule_minutes), args=[name], id=name, max_instances=1)

    log_json(
        logger,
        logging.INFO,
        "scheduler_started",
        resources=list(settings.schedule_resources),
        minutes=settings.schedule_minutes,
    )
    sched.start()


def main(argv=None) -> int:
    load_dotenv(override=False)
    settings = load_settings()
    configure_logging(settings.log_level)

    parser = argparse.ArgumentParser(prog="amplify_syndication")
    sub = parser.add_subparsers(dest="cmd", required=True)

    rep = sub.add_parser("replicate", help="Replicate a resource from its saved checkpoint")
    rep.add_argument("resource", type=str)
    rep.add_argument("--batch-size", type=int, default=settings.batch_size)
    rep.add_argument("--fields", type=str, default=None, help="Comma-separated $select list")
    rep.add_argument("--filter", type=str, default=None, help="OData filter ANDed with the checkpoint boundary")
    rep.add_argument("--checkpoint", type=str, default=None, help="Checkpoint JSON file")
    rep.add_argument("--output", type=str, default=None, help="Append records to this JSONL file (default stdout)")
    rep.add_argument("--sleep", type=float, default=None, help="Seconds between full pages")

    statp = sub.add_parser("status", help="Show saved checkpoints")
    statp.add_argument("resource", type=str, nargs="?", default=None)

    sub.add_parser("count", help="Print the Property count")
    sub.add_parser("metadata", help="Print service metadata as JSON")
    sub.add_parser("schedule", help="Replicate configured resources on an interval")

    args = parser.parse_args(argv)

    if args.cmd == "status":
        for name, ts, key, saved in cmd_status(settings, args.resource):
            print(f"{name}  last_timestamp={ts}  last_key={key}  saved={saved}")
        return 0

    if args.cmd == "schedule":
        schedule_loop(settings)
        return 0

    api = SyndicationAPI(Client(settings))

    if args.cmd == "count":
        print(api.fetch_property_count())
        return 0

    if args.cmd == "metadata":
        print(json.dumps(api.fetch_metadata(), ensure_ascii=False, indent=2))
        return 0

    if args.cmd == "replicate":
        name = resource_spec(args.resource).name
        fields = [f.strip() for f in args.fields.split(",") if f.strip()] if args.fields else None
        run_replication(
            api,
            name,
            args.checkpoint or str(checkpoint_path(settings.checkpoint_dir, name)),
            batch_size=args.batch_size,
            fields=fields,
            filter=args.filter,
            output=args.output,
            sleep_seconds=args.sleep,
        )
        return 0

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
