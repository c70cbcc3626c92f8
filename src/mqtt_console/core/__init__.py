"""Subscription and process lifecycle core."""
