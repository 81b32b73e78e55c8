"""
Tranquil - pattern and playlist API

Serves the pattern/playlist catalog behind a two-tier bearer token scheme.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- auth: Token codec, credential issuance and verification
- middleware: Authorization gate for incoming requests
- storage: Blob persistence abstraction
- api: Request/response models
"""

__version__ = "1.0.0"
