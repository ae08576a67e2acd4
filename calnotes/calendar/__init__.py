"""Calendar parsing, time normalization and recurrence expansion."""
