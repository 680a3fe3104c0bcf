"""Workhive - multi-tenant project management service."""
