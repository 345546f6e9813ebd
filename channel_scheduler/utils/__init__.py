"""Cross-cutting utilities.

Modules:
    logging: structlog configuration and logger factory.
"""
