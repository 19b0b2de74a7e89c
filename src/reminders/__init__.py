"""Reminder matching, scheduling, quotas and the periodic sweep."""
