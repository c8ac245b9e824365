"""Infrastructure: clock and timezones, configuration, HTTP fetching, diagnostics."""
