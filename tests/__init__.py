"""
Test suite for photoshelf.

- Unit tests for models, services, pipelines and operator tasks
- Integration tests for complete photo lifecycles
"""
