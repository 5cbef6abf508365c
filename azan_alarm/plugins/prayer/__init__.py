"""Prayer times: backends, today's schedule, next prayer."""
