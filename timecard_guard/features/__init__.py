"""Feature extraction: raw timecard entries -> AnomalyFeatures."""
