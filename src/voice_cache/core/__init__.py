"""
Core infrastructure for voice-cache.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - errors.py: Error codes and the exception hierarchy
    - concurrency.py: Once, KeyedLocks and SingleFlight
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""
