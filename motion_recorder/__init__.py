"""Motion sensor recorder: acquisition, session buffering and export."""

__version__ = "1.0.0"
