"""MentorMatch: mentor/mentee matching service."""

__version__ = "0.1.0"
