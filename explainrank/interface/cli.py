"""ExplainRank CLI - Command-line interface."""

import argparse
import json
import sys

from ..core.db import get_engine, get_session, init_db, reset_engine
from ..core.schemas import ViewPeriod
from ..observability.logging_config import setup_logging
from ..resilience.error_handler import ExplainRankError


class ExplainRankCLI:
    """Command-line interface for the scoring service."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self):
        parser = argparse.ArgumentParser(description="ExplainRank scoring CLI")
        parser.add_argument("--db-url", help="Database URL (defaults to DATABASE_URL)")
        parser.add_argument("--log-level", default="WARNING", help="Log level")
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init", help="Initialize the database")

        recompute_parser = subparsers.add_parser("recompute", help="Recompute stale scores")
        recompute_parser.add_argument("--all", action="store_true", help="Invalidate every score first")

        rank_parser = subparsers.add_parser("rank", help="Show top-ranked explanations")
        rank_parser.add_argument("--limit", type=int, default=10, help="Number of results")
        rank_parser.add_argument("--include-unpublished", action="store_true")
        rank_parser.add_argument("--json", action="store_true", help="Output as JSON")

        score_parser = subparsers.add_parser("score", help="Show one explanation's score breakdown")
        score_parser.add_argument("explanation_id", type=int)
        score_parser.add_argument("--json", action="store_true", help="Output as JSON")

        views_parser = subparsers.add_parser("views", help="Show view counts for a period")
        views_parser.add_argument("--period", choices=[p.value for p in ViewPeriod], default="week")
        views_parser.add_argument("--limit", type=int, default=20)

        link_parser = subparsers.add_parser("link", help="Add a lineage edge")
        link_parser.add_argument("parent_id", type=int)
        link_parser.add_argument("child_id", type=int)
        link_parser.add_argument("--by", help="Who created the edge")

        unlink_parser = subparsers.add_parser("unlink", help="Remove a lineage edge")
        unlink_parser.add_argument("parent_id", type=int)
        unlink_parser.add_argument("child_id", type=int)

        return parser

    def run(self, args=None):
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        setup_logging(level=parsed.log_level)
        if parsed.db_url:
            reset_engine()
            get_engine(parsed.db_url)

        handler = getattr(self, f"cmd_{parsed.command}", None)
        if handler is None:
            print(f"Unknown command: {parsed.command}")
            return 1

        try:
            return handler(parsed)
        except ExplainRankError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    def cmd_init(self, args):
        print("Initializing database...")
        init_db()
        print("Database initialized successfully!")
        return 0

    def cmd_recompute(self, args):
        from ..core.models import Explanation
        from ..services.scores import invalidate, recompute_stale

        with get_session() as session:
            if args.all:
                ids = [row[0] for row in session.query(Explanation.id).all()]
                invalidate(session, ids)
            count = recompute_stale(session)
        print(f"Recomputed {count} scores")
        return 0

    def cmd_rank(self, args):
        from ..services.scores import rank_explanations

        with get_session() as session:
            results = rank_explanations(session, limit=args.limit, include_unpublished=args.include_unpublished)
            rows = [r.to_dict() for r in results]

        if args.json:
            print(json.dumps(rows, indent=2))
            return 0

        for i, row in enumerate(rows, 1):
            print(
                f"{i:>3}. #{row['explanation_id']:<6} final={row['final_score']:.4f} "
                f"saf={row['saf_score']:.4f} bonus={row['exploration_bonus']:.4f} "
                f"views={row['views']} saves={row['saves']}"
            )
        return 0

    def cmd_score(self, args):
        from ..services.scores import get_score_breakdown

        with get_session() as session:
            breakdown = get_score_breakdown(session, args.explanation_id)

        if args.json:
            print(json.dumps(breakdown, indent=2))
            return 0

        print(f"Explanation #{breakdown['explanation_id']}")
        print(f"  Final score:  {breakdown['final_score']:.4f}")
        print(f"  SAF score:    {breakdown['saf_score']:.4f}")
        print(f"  Prior rate:   {breakdown['prior_rate']:.4f}")
        print(f"  Bonus:        {breakdown['exploration_bonus']:.4f}")
        print(f"  Views/Saves:  {breakdown['views']}/{breakdown['saves']}")
        for c in breakdown["contributions"]:
            print(
                f"    ancestor #{c['ancestor_id']} depth={c['depth']} "
                f"sim={c['similarity']:.4f} weight={c['weight']:.4f}"
            )
        return 0

    def cmd_views(self, args):
        from ..services.events import get_view_counts

        with get_session() as session:
            counts = get_view_counts(session, period=args.period, limit=args.limit)

        for explanation_id, count in counts:
            print(f"#{explanation_id}\t{count}")
        return 0

    def cmd_link(self, args):
        from ..services.lineage import add_lineage_edge

        with get_session() as session:
            add_lineage_edge(session, args.parent_id, args.child_id, created_by=args.by)
        print(f"Linked {args.parent_id} -> {args.child_id}")
        return 0

    def cmd_unlink(self, args):
        from ..services.lineage import remove_lineage_edge

        with get_session() as session:
            remove_lineage_edge(session, args.parent_id, args.child_id)
        print(f"Unlinked {args.parent_id} -> {args.child_id}")
        return 0


def cli_main():
    """Main entry point for CLI."""
    cli = ExplainRankCLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    cli_main()
