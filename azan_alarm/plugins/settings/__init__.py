"""Application settings (notification and vibration toggles, calculation method)."""
