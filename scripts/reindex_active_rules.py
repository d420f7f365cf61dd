from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from ruleindex.core.config import get_settings
from ruleindex.domain.keys import RuleKey
from ruleindex.index import build_active_rule_index
from ruleindex.persistence.db import create_engine, create_session_factory, get_session
from ruleindex.services.sync import ActiveRuleSynchronizer
from ruleindex.services.telemetry import counters_snapshot, operation_latency_stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Dry run: project committed active rules into a throwaway in-process index and report counts. "
            "Nothing is persisted or shared with running services; use it to verify rows are indexable."
        )
    )
    parser.add_argument("--database-url", default=None, help="Override the configured database URL")
    parser.add_argument("--rule", default=None, help="Only check activations of this rule (repository:rule)")
    return parser


async def _dry_run(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = create_engine(settings, database_url=args.database_url)
    index = build_active_rule_index(settings)
    synchronizer = ActiveRuleSynchronizer.from_settings(index, settings)
    try:
        async with get_session(create_session_factory(engine)) as session:
            if args.rule:
                keys = await synchronizer.index_rule(session, RuleKey.parse(args.rule))
            else:
                keys = await synchronizer.reindex_all(session)
        await index.refresh()

        by_rule: dict[str, int] = {}
        for key in keys:
            by_rule[str(key.rule_key)] = by_rule.get(str(key.rule_key), 0) + 1
        summary = {
            "dry_run": True,
            "index": index.store.name,
            "documents": index.query.count(),
            "by_rule": dict(sorted(by_rule.items())),
            "counters": counters_snapshot(),
            "latency_ms": operation_latency_stats(3600, index=index.store.name),
        }
        print(json.dumps(summary, indent=2))
    finally:
        await index.close()
        await engine.dispose()
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    logging.basicConfig(level=get_settings().log_level)
    try:
        return asyncio.run(_dry_run(args))
    except Exception as exc:  # noqa: BLE001 - surface reindex failures clearly
        print(f"reindex_active_rules failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
