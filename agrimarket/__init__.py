# agrimarket/__init__.py
"""Local agricultural marketplace backend."""

__version__ = "1.0.0"
