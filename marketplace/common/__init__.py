"""Shared settings, logging and database helpers."""
