"""Adapters turning Google list calls into cursor-driven page functions."""
