"""
lessonsync - Progress Synchronization & Aggregation

Keeps lesson playback progress in sync with the progress store and
aggregates course progress for the learner dashboard.
"""

__version__ = "0.1.0"
