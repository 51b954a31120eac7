"""
Properties module.

Scoped CRUD over listings, linked to owner/buyer customers. Soft delete sets
status=deleted; status changes follow STATUS_TRANSITIONS.
"""
