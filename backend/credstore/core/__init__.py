"""Shared configuration, logging and HTTP plumbing."""
