"""Tests for the command-line interface."""
import json

import pytest

from explainrank.core.db import get_session, reset_engine
from explainrank.core.models import EventNameEnum, Explanation, ExplanationEvent, ExplanationMetrics
from explainrank.interface.cli import ExplainRankCLI


@pytest.fixture
def cli_db(tmp_path):
    """A fresh SQLite file initialized through the CLI."""
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    assert ExplainRankCLI().run(["--db-url", url, "init"]) == 0
    yield url
    reset_engine()


@pytest.fixture
def seeded(cli_db):
    with get_session() as session:
        parent = Explanation(title="Parent", content="cells divide by mitosis")
        child = Explanation(title="Child", content="cells divide by mitosis quickly")
        session.add_all([parent, child])
        session.flush()
        session.add_all([
            ExplanationEvent(explanation_id=parent.id, user_id="u1", event_name=EventNameEnum.EXPLANATION_VIEWED),
            ExplanationEvent(explanation_id=parent.id, user_id="u2", event_name=EventNameEnum.EXPLANATION_VIEWED),
            ExplanationEvent(explanation_id=parent.id, user_id="u1", event_name=EventNameEnum.EXPLANATION_SAVED),
        ])
        session.add(ExplanationMetrics(explanation_id=parent.id, total_views=2, total_saves=1, save_rate=0.5))
        ids = parent.id, child.id
    return cli_db, ids


def test_no_command_prints_help(capsys):
    assert ExplainRankCLI().run([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_link_and_score(seeded, capsys):
    url, (parent_id, child_id) = seeded
    cli = ExplainRankCLI()

    assert cli.run(["--db-url", url, "link", str(parent_id), str(child_id), "--by", "editor"]) == 0
    assert f"Linked {parent_id} -> {child_id}" in capsys.readouterr().out

    assert cli.run(["--db-url", url, "score", str(child_id), "--json"]) == 0
    breakdown = json.loads(capsys.readouterr().out)
    assert breakdown["explanation_id"] == child_id
    assert [c["ancestor_id"] for c in breakdown["contributions"]] == [parent_id]


def test_cycle_reports_error(seeded, capsys):
    url, (parent_id, child_id) = seeded
    cli = ExplainRankCLI()
    cli.run(["--db-url", url, "link", str(parent_id), str(child_id)])

    assert cli.run(["--db-url", url, "link", str(child_id), str(parent_id)]) == 1
    assert "cycle" in capsys.readouterr().err


def test_unlink_missing_edge(seeded, capsys):
    url, (parent_id, child_id) = seeded
    assert ExplainRankCLI().run(["--db-url", url, "unlink", str(parent_id), str(child_id)]) == 1
    assert "No lineage edge" in capsys.readouterr().err


def test_rank_json(seeded, capsys):
    url, (parent_id, child_id) = seeded
    assert ExplainRankCLI().run(["--db-url", url, "rank", "--json"]) == 0
    rows = json.loads(capsys.readouterr().out)
    assert {row["explanation_id"] for row in rows} == {parent_id, child_id}


def test_recompute_all(seeded, capsys):
    url, _ = seeded
    cli = ExplainRankCLI()
    assert cli.run(["--db-url", url, "recompute"]) == 0
    assert "Recomputed 2 scores" in capsys.readouterr().out

    assert cli.run(["--db-url", url, "recompute"]) == 0
    assert "Recomputed 0 scores" in capsys.readouterr().out

    assert cli.run(["--db-url", url, "recompute", "--all"]) == 0
    assert "Recomputed 2 scores" in capsys.readouterr().out


def test_views(seeded, capsys):
    url, (parent_id, _) = seeded
    assert ExplainRankCLI().run(["--db-url", url, "views", "--period", "all"]) == 0
    assert capsys.readouterr().out.strip() == f"#{parent_id}\t2"
