"""Real-time facial expression estimation and gallery recognition demo."""
