"""User-defined alarms anchored on prayer times."""
