"""
Support Monitor - Scheduled version reporting agent.

Periodically gathers core and add-on version information from a host site,
signs it with a shared secret and posts it to a support collection endpoint.
"""

__version__ = "1.0.1"
__author__ = "Web Development Group"

__all__ = ["__version__"]
