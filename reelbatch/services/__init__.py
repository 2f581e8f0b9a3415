"""Batch pipeline services."""
