"""Deployment entry points."""
