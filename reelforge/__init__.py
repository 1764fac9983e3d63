"""Render queue and slide-to-video compiler."""
