"""
Service layer for scheduled notification processing.
"""

from .scheduled_notifications import RuleExecutor, RunOutcome, run_scheduled_rule, should_advance_watermark  # noqa: F401
