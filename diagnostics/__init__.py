"""Connectivity diagnostics and fault classification."""
