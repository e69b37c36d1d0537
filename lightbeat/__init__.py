"""LightBeat gateway — flashes lights in time with whatever the player is playing."""

__version__ = "1.0.0"
