"""form-rules-engine test suite.

- unit/: engines, expression parser, validator, loader, settings, logging and CLI
"""
