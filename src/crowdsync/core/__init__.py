"""Core configuration and application plumbing."""
