"""Bedside device runtime: camera, microphone, speaker and session control."""
