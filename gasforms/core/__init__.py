"""Configuration, logging, errors, cache and dependency wiring."""
