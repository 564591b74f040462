"""Ambient infrastructure: settings, logging, errors, retry, events."""
