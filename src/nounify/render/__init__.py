"""Raster surface, overlay asset and compositing."""
