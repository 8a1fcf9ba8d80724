"""Pixel diff, region extraction, merging and classification stages."""
