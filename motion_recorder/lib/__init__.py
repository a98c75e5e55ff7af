"""Support libraries: sensor platform, configuration, API server."""
