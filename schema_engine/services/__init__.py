"""
Services package for the custom field schema engine.

Contains logic that doesn't fit cleanly into the repository pattern
(which is for data access): the pure validation engine and the schema
import/export service.
"""
