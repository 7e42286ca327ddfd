"""Cluster access for the chart lifecycle engine."""
