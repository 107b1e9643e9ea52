"""Matplotlib helpers for the SIR recipes."""
