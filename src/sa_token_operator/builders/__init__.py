"""Builders turning API objects into models and models into API objects."""
