"""Detect faces in a photograph and composite eyewear onto each one."""
