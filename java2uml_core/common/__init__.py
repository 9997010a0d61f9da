"""Shared types, errors and settings used by the java2uml core and service."""
