"""FastAPI application for the FormFill gateway."""
