"""Blob stores and the artifact lister."""
