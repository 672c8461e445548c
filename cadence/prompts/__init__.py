"""Compiled prompt defaults and the template store."""
