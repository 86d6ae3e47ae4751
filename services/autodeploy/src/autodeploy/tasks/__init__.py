"""Background tasks running alongside the API."""
