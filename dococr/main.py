import argparse
import json
import sys
from pathlib import Path

from dococr.config.settings import Settings
from dococr.database.connection import Database
from dococr.database.repositories.document_repository import DocumentRepository
from dococr.database.repositories.job_repository import JobRepository
from dococr.database.repositories.lease_repository import LeaseRepository
from dococr.database.repositories.queue_repository import QueueRepository
from dococr.events.pg_notify import PgNotifyBridge
from dococr.events.publisher import ProgressPublisher
from dococr.logging.logger import Log
from dococr.processor.processor import build_processor
from dococr.queue.job_queue import JobQueue
from dococr.services.job_service import JobService
from dococr.worker.job_runner import JobRunner
from dococr.worker.pool import WorkerPool


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dococr", description="Document OCR worker")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("worker", help="Run the worker pool until interrupted")
    commands.add_parser("init-db", help="Create tables and indexes")

    submit = commands.add_parser("submit", help="Store a document and enqueue OCR")
    submit.add_argument("path", type=Path)
    submit.add_argument("--title")
    submit.add_argument("--mime-type")
    submit.add_argument("--languages", help="Language codes, e.g. eng+deu")
    submit.add_argument("--preset", help="document, scan, photo or low_quality")
    submit.add_argument("--options", help="Preprocessing options as a JSON object")
    submit.add_argument("--tag", action="append", dest="tags")

    for name, help_text in (("retry", "Requeue a failed job"), ("cancel", "Cancel a job")):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("job_id", type=int)

    status = commands.add_parser("status", help="Show a document's OCR state and pages")
    status.add_argument("document_id", type=int)
    return parser


def parse_preprocess_options(preset: str | None, options: str | None) -> dict[str, object]:
    """Combine --preset and --options into one option bag."""
    raw: dict[str, object] = {}
    if options:
        loaded = json.loads(options)
        if not isinstance(loaded, dict):
            raise ValueError("--options must be a JSON object")
        raw.update(loaded)
    if preset:
        raw["preset"] = preset
    return raw


def run_worker(settings: Settings, db: Database) -> None:
    doc_repo = DocumentRepository(db)
    job_repo = JobRepository(db)
    lease_repo = LeaseRepository(db)
    queue = JobQueue(db, QueueRepository(db), settings.queue_visibility_timeout_seconds)
    publisher = ProgressPublisher()

    bridge = None
    if settings.publish_pg_notify:
        bridge = PgNotifyBridge(db, settings.pg_notify_channel)
        bridge.attach(publisher)

    processor = build_processor(settings, doc_repo, job_repo, lease_repo, publisher, queue=queue)
    job_runner = JobRunner(processor, queue, job_repo, doc_repo, lease_repo, publisher, settings)
    try:
        WorkerPool(queue, job_runner, settings).run()
    finally:
        if bridge is not None:
            bridge.detach()


def build_job_service(settings: Settings, db: Database) -> JobService:
    queue = JobQueue(db, QueueRepository(db), settings.queue_visibility_timeout_seconds)
    return JobService(db, DocumentRepository(db), JobRepository(db), queue, settings)


def run_command(args: argparse.Namespace, settings: Settings, db: Database) -> int:
    if args.command == "worker":
        run_worker(settings, db)
        return 0
    if args.command == "init-db":
        db.apply_schema()
        Log.info("Schema applied")
        return 0

    service = build_job_service(settings, db)
    if args.command == "submit":
        result = service.submit(
            args.path,
            title=args.title,
            mime_type=args.mime_type,
            languages=args.languages,
            preprocess_options=parse_preprocess_options(args.preset, args.options),
            tags=args.tags,
        )
        print(json.dumps({
            "documentId": result.document_id,
            "jobId": result.job_id,
            "duplicated": result.duplicated,
        }))
    elif args.command == "retry":
        print(json.dumps({"jobId": args.job_id, "queueItemId": service.retry(args.job_id)}))
    elif args.command == "cancel":
        job = service.cancel(args.job_id)
        print(json.dumps({"jobId": job.id, "status": job.status}))
    elif args.command == "status":
        status = service.get_status(args.document_id)
        document, job = status.document, status.job
        print(json.dumps({
            "documentId": document.id,
            "ocrState": document.ocr_state,
            "job": None if job is None else {
                "id": job.id,
                "status": job.status,
                "progress": job.progress,
                "error": job.error_message,
            },
            "pages": [
                {
                    "page": page.page_number,
                    "confidence": page.confidence,
                    "lowQuality": page.low_quality,
                    "text": page.text,
                }
                for page in document.pages
            ],
        }, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point: parse args -> open database -> run command -> close."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)
    db = Database.from_settings(settings)
    db.open()

    try:
        return run_command(args, settings, db)
    except Exception as exc:
        Log.error(f"{args.command} failed: {exc}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
