"""Cross-app plumbing: response envelope, errors, pagination, geo helpers."""
