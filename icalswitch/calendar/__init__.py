"""ICS feed parsing: line handling, timezone resolution, event assembly."""
