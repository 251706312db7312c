"""Quill: account sessions for the Quill API and its async client."""
