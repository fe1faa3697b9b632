"""HTTP API for the study engine."""
