"""
Feature flag filter engine.

Maps stored feature flags into evaluation-ready definitions, validates
filter sets before they are saved, and serves the definitions to
evaluation runtimes (in-process or over HTTP).
"""

__version__ = "0.1.0"
