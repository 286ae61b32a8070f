"""genstudio — image/video generation bridge for the Runware inference API."""

__version__ = "0.1.0"
