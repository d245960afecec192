"""Multi-step workflows composed from the link-following operations."""
