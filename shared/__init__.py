"""Shared building blocks for the autodeploy services."""
