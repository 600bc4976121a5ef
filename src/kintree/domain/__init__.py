"""Kinship graph core: model, active graph view and analyses."""
