"""
livedoc - live browser preview for documents edited on the local machine.
"""

from livedoc.version_info import __version__

__all__ = ['__version__']
