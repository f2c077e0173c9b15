"""Reading tracker: library, sessions, forecasts, stats and the JSON API."""
