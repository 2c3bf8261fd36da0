"""Credential issuance and verification services."""
