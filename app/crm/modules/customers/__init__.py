"""
Customers module.

Scoped CRUD over an agent's customers:
- list (search, customer_type, pagination) + detail
- create with per-agent email uniqueness
- merge update, soft delete (guarded by linked properties), admin reactivation
"""
