"""Configuration for the tailer."""
