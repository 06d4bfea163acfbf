"""Test suite for proxim8.

Test Structure:
- unit/: Unit tests for individual components, one directory per package
- fixtures/: In-memory service fakes and sample data
- conftest.py: Shared fixtures wiring the fakes into pipelines and services
"""
