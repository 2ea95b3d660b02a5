"""
Cross-cutting concerns: settings, domain errors, logging and metrics.
"""
