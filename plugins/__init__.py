"""
Plugins Module

Build pipeline plugins that wrap external analysis tools.

This module provides:
- A builder context for running tool commands in a build checkout
- A plugin base with option parsing and binary lookup
- The PHP copy/paste detector plugin (phpcpd)
- A CLI to run plugins against a build
"""

__version__ = "0.1.0"
