"""Compute embeddings for knowledge base chunks stored without one."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from contextlib import suppress

from sqlalchemy import func

from core.db import models, database
from core.db.repositories.knowledge import SOURCE_TYPES
from core.services import get_embedding_service


logger = logging.getLogger("core.scripts.backfill_embeddings")


# Resolve SessionLocal at call time so rebinding the sessionmaker takes effect.
SessionLocal = lambda: database.SessionLocal()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Populate missing knowledge document embeddings")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=100,
        help="Number of documents to process per batch (default: 100)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show how many documents require embeddings without updating them",
    )
    parser.add_argument(
        "--source-type",
        choices=SOURCE_TYPES,
        default=None,
        help="Only backfill documents of this source type",
    )
    return parser.parse_args(argv)


def count_missing(session, source_type: str | None = None) -> int:
    query = (
        session.query(func.count())
        .select_from(models.KnowledgeDocument)
        .filter(models.KnowledgeDocument.embedding.is_(None))
    )
    if source_type:
        query = query.filter(models.KnowledgeDocument.source_type == source_type)
    return query.scalar()  # type: ignore[no-untyped-call]


def backfill(batch_size: int, dry_run: bool, source_type: str | None = None) -> int:
    session = SessionLocal()
    try:
        run_started = time.perf_counter()
        pending = count_missing(session, source_type)
        logger.info(
            "Embedding backfill run starting",
            extra={
                "batch_size": batch_size,
                "pending_rows": pending,
                "dry_run": dry_run,
                "source_type": source_type or "all",
            },
        )
        if dry_run:
            print(f"{pending} knowledge documents require embeddings; no changes made.")
            return 0

        if pending == 0:
            print("All knowledge documents already have embeddings.")
            return 0

        service = get_embedding_service()
        if not service.is_enabled:
            print(
                "Embedding provider is disabled. Set EMBEDDING_PROVIDER before running the backfill.",
                file=sys.stderr,
            )
            logger.error("Embedding provider disabled; aborting backfill run")
            return 1

        updated = service.backfill_missing_embeddings(session, batch_size=batch_size, source_type=source_type)
        duration = time.perf_counter() - run_started
        print(f"Backfilled embeddings for {updated} knowledge documents (pending before run: {pending}).")
        logger.info(
            "Embedding backfill run finished",
            extra={
                "pending_rows": pending,
                "updated_rows": updated,
                "duration_seconds": round(duration, 3),
            },
        )
        return 0
    finally:
        with suppress(Exception):
            session.close()


def main(argv: list[str] | None = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    return backfill(batch_size=args.batch_size, dry_run=args.dry_run, source_type=args.source_type)


if __name__ == "__main__":  # pragma: no cover - manual execution path
    sys.exit(main())
