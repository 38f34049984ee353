"""Repair estimate API: rate-limited batch cost research over inventoried items."""
