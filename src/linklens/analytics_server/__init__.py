"""LinkLens Analytics Server - HTTP adapter over the engagement engine."""
