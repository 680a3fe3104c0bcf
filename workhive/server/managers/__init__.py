"""Data access managers for the Workhive server.

Each module provides async functions that encapsulate CRUD operations and
business rules.  Managers accept ``AsyncSession`` as a parameter and raise
the typed errors from ``workhive.server.errors``, never HTTP exceptions --
that translation is the app's exception handler's responsibility.
"""
