"""Configuration, database, errors and observability shared by the API."""
