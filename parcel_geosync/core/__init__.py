"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Named constants (config keys, content types, endpoints)
- exceptions: Pipeline exception hierarchy
- ingress: HTTP boundary helpers (request bodies, caller auth, blob client)
"""
