"""
Test fixtures package.

This package provides reusable pytest fixtures for testing the channel
scheduler. Import fixtures into conftest.py to make them available to all tests.

Available fixture modules:
- database: Async SQLAlchemy engine, session factory and store fixtures
"""
