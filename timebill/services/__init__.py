"""Aggregation and reporting over tracked time."""
