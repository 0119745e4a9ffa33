"""Pydantic models shared by the client and the background server."""
