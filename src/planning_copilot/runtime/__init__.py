"""Runtime services for the planning copilot."""
