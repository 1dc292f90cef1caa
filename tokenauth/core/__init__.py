"""Application core: configuration, logging, errors and extensions."""
