"""Console entry point for the crowd feed."""
