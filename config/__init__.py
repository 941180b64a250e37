"""
Configuration management for the code smell detector.

This package handles:
- Environment variable loading
- Configuration file parsing (JSON or YAML)
- Settings validation using Pydantic
"""
