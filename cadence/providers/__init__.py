"""Model client interface and implementations."""
