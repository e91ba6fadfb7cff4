"""Database package: declarative base, engine and session factory."""
