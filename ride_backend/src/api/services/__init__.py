"""Ride lifecycle engine: creation, discovery, claim, PIN check, status and location updates."""
