"""
SiteTracer package initializer.
Defines package version; the CLI lives in :mod:`site_tracer.cli`.
"""
__version__ = "0.1.0"
