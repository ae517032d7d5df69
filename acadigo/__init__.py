"""Acadigo learning-management backend."""
