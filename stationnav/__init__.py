"""Indoor multi-level routing over OpenStreetMap station data."""
