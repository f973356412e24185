"""Reusable page components."""
