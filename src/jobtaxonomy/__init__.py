"""
Job Taxonomy - sector classification of job postings with adaptive learning.
"""

__version__ = "0.1.0"
