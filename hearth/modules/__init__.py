"""Modules — scripts loaded into the session once per content change."""
