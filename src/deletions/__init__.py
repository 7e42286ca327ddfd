"""Ordered deletion of resources with confirmation waits."""
