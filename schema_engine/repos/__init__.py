"""
Repository layer for data access operations.

This package contains repository modules that encapsulate database queries
and business rules for entity types, field definitions, choices and stored
values. Repositories flush; callers own the commit.
"""
