"""
Core infrastructure for the Tubely backend.

- auth: Bearer token verification (HS256 JWT)
- database: MongoDB async client with Motor driver and connection pooling
- errors: Error taxonomy and the JSON error envelope
- storage: S3-compatible storage client
"""
