"""DrumForge AI backend: drum-track generation gated by subscription tier."""

__version__ = "0.1.0"
