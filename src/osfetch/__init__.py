"""osfetch - download OS images for fleet device types."""
