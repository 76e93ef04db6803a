"""Same-day booking marketplace: platform sync and reconciliation engine."""
