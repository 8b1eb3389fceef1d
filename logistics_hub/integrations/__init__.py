"""Thin clients for the mapping, payment and courier vendors."""
