"""Workhive API server: workspaces, members, projects, tasks."""
