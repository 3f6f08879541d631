"""
Observability module for logging and CPU profile capture.
"""
