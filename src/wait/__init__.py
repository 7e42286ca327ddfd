"""Waiting for resources to reach a condition (job completion, deletion)."""
