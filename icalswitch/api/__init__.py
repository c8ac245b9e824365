"""HTTP status API for the calendar switch."""
