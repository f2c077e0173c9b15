"""Notes, quotes and highlights attached to books."""
