from __future__ import annotations

import runpy
from pathlib import Path

from core.db import models

MODULE_GLOBALS = runpy.run_path(Path(__file__).resolve().parents[2] / "scripts" / "backfill_embeddings.py")
BACKFILL = MODULE_GLOBALS["backfill"]
COUNT_MISSING = MODULE_GLOBALS["count_missing"]
MAIN = MODULE_GLOBALS["main"]


class DummySession:
    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


def _patch(monkeypatch, **overrides):
    for key, value in overrides.items():
        monkeypatch.setitem(BACKFILL.__globals__, key, value)


def test_count_missing_filters_by_source_type(db):
    db.add_all([
        models.KnowledgeDocument(source_type="clinical_guideline", source_id="g-1", title="G", content="a"),
        models.KnowledgeDocument(source_type="interaction", source_id="i-1", title="I", content="b"),
        models.KnowledgeDocument(
            source_type="interaction", source_id="i-2", title="I2", content="c", embedding=[0.1, 0.2]
        ),
    ])
    db.commit()

    assert COUNT_MISSING(db) == 2
    assert COUNT_MISSING(db, "interaction") == 1


def test_backfill_dry_run(monkeypatch, capsys):
    session = DummySession()
    _patch(monkeypatch, SessionLocal=lambda: session, count_missing=lambda _s, _t=None: 7)

    assert MAIN(["--dry-run"]) == 0
    assert session.closed is True
    assert "7 knowledge documents" in capsys.readouterr().out


def test_backfill_nothing_pending(monkeypatch, capsys):
    session = DummySession()
    _patch(monkeypatch, SessionLocal=lambda: session, count_missing=lambda _s, _t=None: 0)

    assert MAIN([]) == 0
    assert "already have embeddings" in capsys.readouterr().out


def test_backfill_disabled_provider(monkeypatch, capsys):
    session = DummySession()

    class DisabledService:
        is_enabled = False

    _patch(
        monkeypatch,
        SessionLocal=lambda: session,
        count_missing=lambda _s, _t=None: 3,
        get_embedding_service=lambda: DisabledService(),
    )

    assert MAIN([]) == 1
    assert session.closed is True
    assert "Embedding provider is disabled" in capsys.readouterr().err


def test_backfill_runs_for_source_type(monkeypatch, capsys):
    session = DummySession()
    seen = {}

    class EnabledService:
        is_enabled = True

        def backfill_missing_embeddings(self, sess, batch_size, source_type=None):
            seen.update(session=sess, batch_size=batch_size, source_type=source_type)
            return 4

    _patch(
        monkeypatch,
        SessionLocal=lambda: session,
        count_missing=lambda _s, _t=None: 5,
        get_embedding_service=lambda: EnabledService(),
    )

    assert MAIN(["--batch-size", "50", "--source-type", "pubmed"]) == 0
    assert seen == {"session": session, "batch_size": 50, "source_type": "pubmed"}
    assert "Backfilled embeddings for 4 knowledge documents" in capsys.readouterr().out
