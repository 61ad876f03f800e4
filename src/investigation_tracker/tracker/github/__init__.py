"""GitHub access for the catch-up scan."""
