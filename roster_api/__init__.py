"""Application package for the class roster backend.

This package exposes the service, repository and model modules used by
the FastAPI application and the CLI import script. Individual modules
contain the concrete implementations and documentation.
"""
