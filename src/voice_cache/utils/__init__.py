"""
Utility modules for voice-cache.

    - timeit.py: Performance measurement utilities
"""
