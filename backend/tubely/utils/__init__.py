"""
Utilities for the Tubely backend.

- file_validator: Content-Type parsing, media type allow-lists and size checks
- logger: JSON/plain formatters, setup_logging and context-enriched adapters
"""
