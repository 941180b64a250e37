"""
Test suite for the code smell detector.

This package contains:
- Unit tests for individual components
- Property-based tests using Hypothesis
- End-to-end tests against a mocked completion endpoint
"""
