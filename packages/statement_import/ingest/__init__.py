"""Input adapters: delimited exports, PDF statement text and paged bank feeds."""
