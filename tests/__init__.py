"""
Test suite for the store sync backend.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_sync_engine.py -v
"""
