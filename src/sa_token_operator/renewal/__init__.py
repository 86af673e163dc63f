"""Renewal decision logic and idempotent orchestration."""
