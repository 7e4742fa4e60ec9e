"""
Service layer abstraction.

Each service encapsulates business logic for a domain and talks to the
SQLite store directly.  Services take the owner's identity as an
explicit argument and raise the exceptions from ``core.exceptions``;
they never build HTTP responses.
"""
