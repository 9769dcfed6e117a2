"""Command line front ends for prickly."""
