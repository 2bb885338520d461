"""Smart-crop detection and crop enhancement."""
