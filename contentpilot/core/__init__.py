"""Shared infrastructure: settings, logging, errors, time helpers and persistence."""
