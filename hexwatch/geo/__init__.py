"""Cell geometry: H3 boundary decoding and view envelopes."""
