"""
Feature modules live under this package.

Each module owns its models, service (repository) and API blueprint, and reuses the
platform primitives: auth, access scope, errors, DB session.
"""
