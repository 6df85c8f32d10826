"""Operator command line for the real-time pipeline."""
