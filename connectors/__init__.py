"""Clients for the remote search cluster and ingestion stream."""
