"""MindTrack reference API service."""
