"""LAMIKAS account functions service."""
