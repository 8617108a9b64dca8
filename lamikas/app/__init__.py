"""FastAPI application for the LAMIKAS account functions."""
