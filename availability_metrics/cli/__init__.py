"""
Command-line interface for Availability Metrics.
"""
