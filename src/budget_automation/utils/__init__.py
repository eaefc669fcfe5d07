"""Shared helpers for the budget automation engine."""
