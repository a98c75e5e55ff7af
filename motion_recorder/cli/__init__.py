"""Command line interface for the motion sensor recorder."""
