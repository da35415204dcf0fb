"""Remote transformation service clients."""
