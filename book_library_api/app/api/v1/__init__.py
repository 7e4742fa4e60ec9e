"""
Version 1 of the Book Library API.

The routes are mounted under ``settings.api_prefix`` (``/api`` by
default) so clients address them as ``/api/books`` and so on.
"""
