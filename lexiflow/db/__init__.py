"""Persistence layer: engine, transactional scope and ORM models."""
