"""Browser-side components of a relay request."""
