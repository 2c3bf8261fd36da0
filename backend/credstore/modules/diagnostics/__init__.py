"""Operational inspection endpoints."""
