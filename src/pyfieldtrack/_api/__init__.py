"""Internal endpoint modules for the tracking API."""
