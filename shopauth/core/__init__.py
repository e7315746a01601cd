"""Core configuration, errors and clients for shopauth."""
