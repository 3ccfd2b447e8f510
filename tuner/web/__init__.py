"""Browser-facing surface: FastAPI app in :mod:`tuner.web.server`."""
