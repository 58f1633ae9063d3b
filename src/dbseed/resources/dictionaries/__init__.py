"""Word lists for text generation."""
