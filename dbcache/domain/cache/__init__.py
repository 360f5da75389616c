"""
Cache Domain Module

Expiration rules for database-backed cache entries.
Contains value objects, the repository interface, and domain services.
"""
