"""Link store and preview serving on top of the extraction engine."""
