"""Temporal Intelligence Test Suite

Test organization:
- unit/: Unit tests for individual modules
  - extraction/: classifier, extractor, validator
  - scoring/, budget/, digest/, inference/, learning/, preferences/
- integration/: Engine and HTTP API tests over an in-memory store

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/budget/
"""
