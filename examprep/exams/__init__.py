"""
Exams

The exam session aggregate, scoring and analysis, persistence and the exam
service with its HTTP router.
"""
