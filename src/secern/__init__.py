"""secern: sift a stream of lines into output files using regex sinks."""

__version__ = "0.9.1"
