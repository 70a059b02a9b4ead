"""
ExamPrep Certification Practice Backend

This package provides the backend for a certification-exam practice platform:
timed exam sessions built from a question bank, answer scoring with single-choice
and multi-select semantics, results and study analysis, and ownership of exams by
either authenticated users or anonymous session holders.
"""

__version__ = "0.1.0"
