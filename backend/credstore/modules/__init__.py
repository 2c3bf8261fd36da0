"""Feature modules: one per service surface."""
