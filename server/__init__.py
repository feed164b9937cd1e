"""HTTP server package for stackforge."""
