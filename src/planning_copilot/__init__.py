"""Planning copilot: phased planning conversations that drive a lane-based board."""

__version__ = "0.1.0"
