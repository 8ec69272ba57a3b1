"""Candidate-to-internship matching and recommendation engine."""

__version__ = "0.1.0"
