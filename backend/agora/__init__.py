"""Agora social platform backend."""
