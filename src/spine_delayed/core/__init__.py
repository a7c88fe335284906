"""Ambient building blocks: errors, logging, settings, events, timestamps."""
