"""Application core: settings, logging, exceptions and concurrency helpers."""
