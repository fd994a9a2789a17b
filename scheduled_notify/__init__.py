"""
Scheduled notification service.

Aggregates new vulnerabilities and policy violations per scheduled rule
and publishes one summary notification per group through pluggable
publishers (console, webhook, email).
"""
