"""Shared helpers for the change-proposal engine."""
