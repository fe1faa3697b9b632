"""
lexiflow - adaptive vocabulary study engine.

Schedules which words a learner sees next, records self-assessed
responses, and keeps session, streak and accuracy aggregates.
"""

__version__ = "1.0.0"
