"""
Scheduled notification worker entrypoint.

Runs scheduled notification rules once and exits; an external scheduler
(cron, systemd timer, Kubernetes CronJob) decides when to invoke it and
must not start a second run of the same rule while one is in flight.

    python -m scheduled_notify.worker --rule-id <uuid>
    python -m scheduled_notify.worker --all
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from .core.config import settings
from .core.db import SessionLocal
from .core.logging_config import setup_logging
from .services.rule_store import list_scheduled_rules
from .services.scheduled_notifications import RuleExecutor, run_scheduled_rule


logger = logging.getLogger("worker")


def _enabled_rule_ids() -> list[str]:
    with SessionLocal() as db:
        return [rule.id for rule in list_scheduled_rules(db, enabled_only=True)]


def run_all(executor: RuleExecutor) -> int:
    rule_ids = _enabled_rule_ids()
    logger.info("Running %s enabled scheduled notification rule(s)", len(rule_ids))
    for rule_id in rule_ids:
        run_scheduled_rule(rule_id, executor)
    return len(rule_ids)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run scheduled notification rules once.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--rule-id", help="Run a single scheduled notification rule")
    target.add_argument("--all", action="store_true", help="Run every enabled scheduled notification rule")
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)
    executor = RuleExecutor(SessionLocal)
    if args.rule_id:
        run_scheduled_rule(args.rule_id, executor)
    else:
        run_all(executor)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
