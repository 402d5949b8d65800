"""
Core package: logging, exceptions and the in-process event bus.
"""
