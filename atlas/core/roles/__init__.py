"""Roles: hierarchy table and role lookups."""
